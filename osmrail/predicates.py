"""Tag predicates deciding which ways an extraction keeps.

Predicates are frozen dataclasses so they can be pickled into decoder
processes. They compose with ``&``, ``|`` and ``~``::

    RAILWAY_RAIL & ~HasTag("service")
"""

from __future__ import annotations

from abc import ABC
from abc import abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass

from osmrail.osm.types import OsmTags


class TagPredicate(ABC):
    @abstractmethod
    def matches(self, tags: OsmTags) -> bool: ...

    def __call__(self, tags: OsmTags) -> bool:
        return self.matches(tags)

    def __and__(self, other: TagPredicate) -> TagPredicate:
        return AllOf((self, other))

    def __or__(self, other: TagPredicate) -> TagPredicate:
        return AnyOf((self, other))

    def __invert__(self) -> TagPredicate:
        return Not(self)


@dataclass(frozen=True)
class HasTag(TagPredicate):
    """Key is present and, when ``value`` is given, equal to it."""

    key: str
    value: str | None = None

    def matches(self, tags: OsmTags) -> bool:
        if self.key not in tags:
            return False
        return self.value is None or tags[self.key] == self.value


@dataclass(frozen=True)
class AllOf(TagPredicate):
    predicates: tuple[TagPredicate, ...]

    def matches(self, tags: OsmTags) -> bool:
        return all(predicate.matches(tags) for predicate in self.predicates)


@dataclass(frozen=True)
class AnyOf(TagPredicate):
    predicates: tuple[TagPredicate, ...]

    def matches(self, tags: OsmTags) -> bool:
        return any(predicate.matches(tags) for predicate in self.predicates)


@dataclass(frozen=True)
class Not(TagPredicate):
    predicate: TagPredicate

    def matches(self, tags: OsmTags) -> bool:
        return not self.predicate.matches(tags)


RAILWAY_RAIL = HasTag("railway", "rail")
MAIN_LINE_RAIL = RAILWAY_RAIL & HasTag("usage", "main")


def predicate_from_tags(tags: Mapping[str, str | None]) -> TagPredicate:
    """All given tags must match; a ``None`` value only requires the key."""
    if not tags:
        raise ValueError("At least one tag is required to build a predicate")
    return AllOf(tuple(HasTag(key, value) for key, value in tags.items()))
