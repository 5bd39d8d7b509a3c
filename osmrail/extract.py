"""Two-pass extraction of tagged ways and the nodes they reference.

Ways and the nodes they reference are not colocated in a PBF file, so the
stream is read twice: pass one keeps the matching ways, the referenced node
ids are then collected into a set, and only after that set is complete is the
stream rewound for pass two, which keeps the referenced nodes.
"""

from __future__ import annotations

import multiprocessing
from collections.abc import Callable
from collections.abc import Container
from collections.abc import Iterable
from collections.abc import Iterator
from concurrent.futures import Executor
from concurrent.futures import ProcessPoolExecutor
from contextlib import nullcontext
from enum import Enum
from functools import partial
from pathlib import Path
from typing import Any
from typing import BinaryIO
from typing import TypeVar

import fsspec
from loguru import logger
from more_itertools import batched
from tqdm import tqdm

from osmrail.osm.blob import BlobType
from osmrail.osm.blob import check_header
from osmrail.osm.blob import decode_header_blob
from osmrail.osm.blob import decode_primitive_blob
from osmrail.osm.blob import read_blobs
from osmrail.osm.elements import decode_nodes
from osmrail.osm.elements import decode_ways
from osmrail.osm.types import OsmNode
from osmrail.osm.types import OsmWay
from osmrail.osm.types import Region
from osmrail.predicates import TagPredicate

T = TypeVar("T")

# Blobs handed to the pool per worker before results are drained.
BLOBS_PER_WORKER = 4

# Regions run on threads; decoder processes must not be forked from them.
POOL_START_METHOD = "spawn"


class ExtractionState(Enum):
    COLLECTING_WAYS = "collecting_ways"
    COMPUTING_REQUIRED_NODES = "computing_required_nodes"
    COLLECTING_NODES = "collecting_nodes"
    DONE = "done"


_NEXT_STATE: dict[ExtractionState | None, ExtractionState] = {
    None: ExtractionState.COLLECTING_WAYS,
    ExtractionState.COLLECTING_WAYS: ExtractionState.COMPUTING_REQUIRED_NODES,
    ExtractionState.COMPUTING_REQUIRED_NODES: ExtractionState.COLLECTING_NODES,
    ExtractionState.COLLECTING_NODES: ExtractionState.DONE,
}


class PrimitiveStream:
    """Forward-only sequence of PBF blobs that can be rewound to where it started."""

    def __init__(self, source: BinaryIO) -> None:
        self.source = source
        self._start = source.tell()

    def blobs(self) -> Iterator:
        return read_blobs(self.source)

    def rewind(self) -> None:
        self.source.seek(self._start)


def ways_in_blob(blob_data: bytes, predicate: TagPredicate) -> list[OsmWay]:
    block = decode_primitive_blob(blob_data)
    return [way for way in decode_ways(block) if predicate.matches(way.tags)]


def nodes_in_blob(blob_data: bytes, required: Container[int]) -> list[OsmNode]:
    block = decode_primitive_blob(blob_data)
    return list(decode_nodes(block, wanted=required))


# Set once per decoder process so the id set is not pickled with every blob.
_worker_required_nodes: frozenset[int] = frozenset()


def _init_node_worker(required: frozenset[int]) -> None:
    global _worker_required_nodes
    _worker_required_nodes = required


def _required_nodes_in_blob(blob_data: bytes) -> list[OsmNode]:
    return nodes_in_blob(blob_data, _worker_required_nodes)


class TwoPassExtractor:
    """Runs a single extraction through the states of :class:`ExtractionState`.

    Retained ways keep the order in which they occur in the stream, whatever
    the number of workers.
    """

    def __init__(self, predicate: TagPredicate, workers: int = 1, progress: bool = False) -> None:
        self.predicate = predicate
        self.workers = max(1, workers)
        self.progress = progress
        self.state: ExtractionState | None = None
        self.transitions: list[ExtractionState] = []

    def _transition(self, state: ExtractionState) -> None:
        expected = _NEXT_STATE.get(self.state)
        if state is not expected:
            raise RuntimeError(f"Invalid extraction transition {self.state} -> {state}")
        logger.debug(f"Extraction state {self.state} -> {state}")
        self.state = state
        self.transitions.append(state)

    def _require_state(self, state: ExtractionState) -> None:
        if self.state is not state:
            raise RuntimeError(f"Extraction is in state {self.state}, expected {state}")

    def _data_blobs(self, stream: PrimitiveStream, desc: str) -> Iterator[bytes]:
        blobs = tqdm(stream.blobs(), desc=desc, unit=" blobs", unit_scale=True, disable=not self.progress)
        for blob in blobs:
            match blob.type:
                case BlobType.OSM_HEADER.value:
                    check_header(decode_header_blob(blob.blob_data))
                case BlobType.OSM_DATA.value:
                    yield blob.blob_data
                case other:
                    logger.debug(f"Skipping blob of unknown type {other!r}")

    def _executor(self, initializer: Callable[..., None] | None = None, initargs: tuple = ()) -> Any:
        if self.workers == 1:
            return nullcontext(None)
        return ProcessPoolExecutor(
            max_workers=self.workers,
            mp_context=multiprocessing.get_context(POOL_START_METHOD),
            initializer=initializer,
            initargs=initargs,
        )

    def _map(self, fn: Callable[[bytes], T], blobs: Iterable[bytes], executor: Executor | None) -> Iterator[T]:
        if executor is None:
            yield from map(fn, blobs)
            return
        for batch in batched(blobs, self.workers * BLOBS_PER_WORKER):
            yield from executor.map(fn, batch)

    def collect_ways(self, stream: PrimitiveStream) -> list[OsmWay]:
        self._require_state(ExtractionState.COLLECTING_WAYS)
        fn = partial(ways_in_blob, predicate=self.predicate)
        ways: list[OsmWay] = []
        with self._executor() as executor:
            for retained in self._map(fn, self._data_blobs(stream, "Pass 1: ways"), executor):
                ways.extend(retained)
        return ways

    def compute_required_nodes(self, ways: Iterable[OsmWay]) -> frozenset[int]:
        self._require_state(ExtractionState.COMPUTING_REQUIRED_NODES)
        required: set[int] = set()
        for way in ways:
            required.update(way.nodes)
        return frozenset(required)

    def collect_nodes(self, stream: PrimitiveStream, required: frozenset[int]) -> dict[int, OsmNode]:
        self._require_state(ExtractionState.COLLECTING_NODES)
        if self.workers == 1:
            fn: Callable[[bytes], list[OsmNode]] = partial(nodes_in_blob, required=required)
        else:
            fn = _required_nodes_in_blob

        nodes: dict[int, OsmNode] = {}
        with self._executor(_init_node_worker, (required,)) as executor:
            for found in self._map(fn, self._data_blobs(stream, "Pass 2: nodes"), executor):
                for node in found:
                    nodes[node.id] = node
        return nodes

    def run(self, stream: PrimitiveStream, name: str) -> Region:
        self._transition(ExtractionState.COLLECTING_WAYS)
        ways = self.collect_ways(stream)
        logger.info(f"{name}: retained {len(ways)} ways")

        self._transition(ExtractionState.COMPUTING_REQUIRED_NODES)
        required = self.compute_required_nodes(ways)
        logger.info(f"{name}: {len(required)} node ids referenced")
        # Pass two must not start before the id set is final.
        stream.rewind()

        self._transition(ExtractionState.COLLECTING_NODES)
        nodes = self.collect_nodes(stream, required)
        missing = len(required) - len(nodes)
        if missing:
            logger.warning(f"{name}: {missing} referenced node ids are absent from the source")
        logger.info(f"{name}: collected {len(nodes)} nodes")

        self._transition(ExtractionState.DONE)
        return Region(name=name, ways=ways, nodes=nodes)


def extract(
    source: BinaryIO | PrimitiveStream,
    predicate: TagPredicate,
    name: str,
    workers: int = 1,
    progress: bool = False,
) -> Region:
    stream = source if isinstance(source, PrimitiveStream) else PrimitiveStream(source)
    return TwoPassExtractor(predicate, workers=workers, progress=progress).run(stream, name)


def extract_file(
    path: str | Path,
    predicate: TagPredicate,
    name: str,
    workers: int = 1,
    progress: bool = False,
) -> Region:
    with fsspec.open(str(path), "rb") as fin:
        return extract(fin, predicate, name, workers=workers, progress=progress)
