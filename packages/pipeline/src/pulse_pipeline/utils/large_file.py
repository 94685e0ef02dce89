"""
utils/large_file.py — Memory-safe helpers for multi-gigabyte downloads.

Provides:
  - stream_gzip_chunks()     — HTTP byte stream decompressed on the fly
  - check_available_memory() — RAM guard run before a large stream starts
  - scan_progress()          — tqdm row counter for long scans

Nothing here writes the download to disk or holds more than one compressed
and one decompressed chunk at a time.
"""

from __future__ import annotations

import zlib
from collections.abc import AsyncIterator

import httpx
import psutil
import structlog
from tqdm import tqdm

log = structlog.get_logger(__name__)

# wbits for zlib: 16 + MAX_WBITS expects a gzip header and trailer
_GZIP_WBITS = 16 + zlib.MAX_WBITS


# ---------------------------------------------------------------------------
# stream_gzip_chunks
# ---------------------------------------------------------------------------


async def stream_gzip_chunks(
    client: httpx.AsyncClient,
    url: str,
    chunk_size: int = 1_048_576,
) -> AsyncIterator[bytes]:
    """Yield decompressed bytes from a gzip resource as they arrive.

    Concatenated gzip members (as produced by some S3 exports) are followed
    across member boundaries. A non-2xx response raises
    ``httpx.HTTPStatusError`` before anything is yielded; a truncated
    stream raises ``zlib.error`` at the end.
    """
    async with client.stream("GET", url) as resp:
        resp.raise_for_status()
        total = resp.headers.get("content-length")
        log.info(
            "gzip_stream_open",
            url=url,
            compressed_mb=round(int(total) / 1_048_576, 1) if total else None,
        )

        decompressor = zlib.decompressobj(_GZIP_WBITS)
        member_open = False
        compressed_bytes = 0
        async for raw in resp.aiter_raw(chunk_size):
            compressed_bytes += len(raw)
            data = raw
            while data:
                member_open = True
                out = decompressor.decompress(data)
                if out:
                    yield out
                if decompressor.eof:
                    member_open = False
                    data = decompressor.unused_data
                    decompressor = zlib.decompressobj(_GZIP_WBITS)
                else:
                    data = b""

        if member_open:
            raise zlib.error("gzip stream ended before the end-of-stream marker")

        log.info("gzip_stream_complete", compressed_bytes=compressed_bytes)


# ---------------------------------------------------------------------------
# Memory guard
# ---------------------------------------------------------------------------


def check_available_memory(min_gb: float = 0.5) -> float:
    """Return available RAM in GB; raise MemoryError below *min_gb*."""
    available_gb = psutil.virtual_memory().available / (1024**3)
    if available_gb < min_gb:
        raise MemoryError(
            f"Only {available_gb:.2f}GB RAM available, need at least {min_gb}GB"
        )
    log.debug("memory_check", available_gb=round(available_gb, 2))
    return available_gb


# ---------------------------------------------------------------------------
# Progress
# ---------------------------------------------------------------------------


def scan_progress(desc: str, *, disable: bool | None = None) -> tqdm:
    """A row counter bar (no total) for scans of unknown length."""
    return tqdm(desc=desc, unit=" rows", unit_scale=True, mininterval=1.0, disable=disable)
