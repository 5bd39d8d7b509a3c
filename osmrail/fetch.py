from __future__ import annotations

import hashlib
import os
from pathlib import Path
from typing import Any
from typing import Protocol

import requests
from loguru import logger
from tqdm import tqdm

from osmrail.errors import ChecksumFormatError
from osmrail.errors import FileNameMismatchError
from osmrail.errors import NetworkError

DOWNLOAD_CHUNK_SIZE = 1024 * 1024
MD5_BUFFER_SIZE = 1024 * 1024


class ProgressSink(Protocol):
    def update(self, transferred: int, total: int | None) -> None: ...


class TqdmProgress:
    """Byte progress bar for a single download."""

    def __init__(self, desc: str) -> None:
        self.bar = tqdm(desc=desc, unit="B", unit_scale=True, unit_divisor=1024)

    def update(self, transferred: int, total: int | None) -> None:
        if total is not None and self.bar.total != total:
            self.bar.total = total
        self.bar.update(transferred - self.bar.n)

    def close(self) -> None:
        self.bar.close()

    def __enter__(self) -> TqdmProgress:
        return self

    def __exit__(self, exc_type: Any, exc_value: Any, traceback: Any) -> None:
        self.close()


def file_md5(path: Path) -> str:
    md5_hash = hashlib.md5()
    with open(path, "rb") as f:
        while chunk := f.read(MD5_BUFFER_SIZE):
            md5_hash.update(chunk)
    return md5_hash.hexdigest()


def parse_manifest(text: str) -> tuple[str, str]:
    """Split ``<digest> <filename>`` on the first run of whitespace."""
    parts = text.strip().split(maxsplit=1)
    if len(parts) != 2:
        raise ChecksumFormatError(f"Expected '<digest> <filename>' in checksum manifest, got {text!r}")
    digest, expected_name = parts
    return digest, expected_name.strip()


def fetch_text(session: requests.Session, url: str) -> str:
    try:
        response = session.get(url)
        response.raise_for_status()
        return response.text
    except requests.RequestException as e:
        raise NetworkError(f"Failed to fetch {url}: {e}") from e


def is_up_to_date(session: requests.Session, checksum_url: str, local_path: Path) -> bool:
    digest, expected_name = parse_manifest(fetch_text(session, checksum_url))
    if expected_name != local_path.name:
        raise FileNameMismatchError(f"Checksum manifest describes {expected_name!r}, not {local_path.name!r}")
    return file_md5(local_path).lower() == digest.lower()


def download(
    session: requests.Session,
    url: str,
    local_path: Path,
    progress: ProgressSink | None = None,
) -> int:
    """Stream ``url`` into ``local_path`` through a ``.part`` file.

    ``local_path`` is only replaced once the whole body has been written.
    """
    part_path = local_path.with_name(local_path.name + ".part")
    local_path.parent.mkdir(parents=True, exist_ok=True)

    transferred = 0
    try:
        with session.get(url, stream=True) as response:
            response.raise_for_status()
            total = int(response.headers.get("Content-Length", 0)) or None
            with open(part_path, "wb") as f:
                for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                    if not chunk:
                        continue
                    f.write(chunk)
                    transferred += len(chunk)
                    if progress is not None:
                        progress.update(transferred, total)
        os.replace(part_path, local_path)
    except requests.RequestException as e:
        part_path.unlink(missing_ok=True)
        raise NetworkError(f"Failed to download {url}: {e}") from e
    except BaseException:
        part_path.unlink(missing_ok=True)
        raise

    return transferred


def ensure_local_copy(
    data_url: str,
    checksum_url: str,
    local_path: str | Path,
    session: requests.Session | None = None,
    progress: ProgressSink | None = None,
) -> bool:
    """Make sure ``local_path`` holds the current remote extract.

    Returns True when the file had to be downloaded.
    """
    local_path = Path(local_path)
    if session is None:
        with requests.Session() as owned:
            return _refresh(owned, data_url, checksum_url, local_path, progress)
    return _refresh(session, data_url, checksum_url, local_path, progress)


def _refresh(
    session: requests.Session,
    data_url: str,
    checksum_url: str,
    local_path: Path,
    progress: ProgressSink | None,
) -> bool:
    if local_path.exists():
        if is_up_to_date(session, checksum_url, local_path):
            logger.info(f"{local_path.name} is up to date")
            return False
        logger.info(f"{local_path.name} does not match its checksum, downloading again")
    else:
        logger.info(f"{local_path.name} not present, downloading")

    transferred = download(session, data_url, local_path, progress=progress)
    logger.info(f"Downloaded {transferred} bytes to {local_path}")
    return True
