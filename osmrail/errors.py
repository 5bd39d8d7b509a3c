from __future__ import annotations


class OsmRailError(Exception):
    """Base class for all errors raised by osmrail."""


class FetchError(OsmRailError):
    pass


class NetworkError(FetchError):
    """Transport level failure while talking to the extract server."""


class ChecksumFormatError(FetchError):
    """The checksum manifest is not of the form ``<digest> <filename>``."""


class FileNameMismatchError(FetchError):
    """The checksum manifest describes a different file than the local one."""


class SourceFormatError(OsmRailError):
    """The primitive stream of an extract cannot be decoded."""


class CacheError(OsmRailError):
    pass


class CacheCorruptError(CacheError):
    """The persisted bytes of a cache entry cannot be decoded into a region."""


class ConfigError(OsmRailError):
    pass
