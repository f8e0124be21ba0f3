"""Chunked HTTP range reads over a remote file, with a session byte ceiling."""

from __future__ import annotations

import logging
import re
from typing import Dict, Optional

import httpx

from funding_core.errors import TransportError

logger = logging.getLogger(__name__)

_CONTENT_RANGE = re.compile(r"bytes\s+(\d+)-(\d+)/(\d+|\*)")


class RangeReader:
    """Serve byte reads from a chunk cache, fetching missing chunks on demand.

    Requests are aligned to ``chunk_size`` and extended by up to
    ``read_ahead_chunks`` so sequential reads need few round trips. Every byte
    received counts against ``max_bytes``; a fetch that would cross it raises
    TransportError before the request is sent.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        url: str,
        *,
        chunk_size: int = 4096,
        max_bytes: int = 10 * 1024 * 1024,
        read_ahead_chunks: int = 16,
    ) -> None:
        self._client = client
        self.url = url
        self.chunk_size = chunk_size
        self.max_bytes = max_bytes
        self.read_ahead_chunks = max(1, read_ahead_chunks)
        self._chunks: Dict[int, bytes] = {}
        self.total_size: Optional[int] = None
        self.bytes_read = 0
        self.requests_made = 0

    @property
    def remaining_budget(self) -> int:
        return max(0, self.max_bytes - self.bytes_read)

    def _last_chunk_index(self) -> Optional[int]:
        if self.total_size is None:
            return None
        return max(0, (self.total_size - 1) // self.chunk_size)

    async def read(self, offset: int, length: int) -> bytes:
        """Return up to ``length`` bytes at ``offset`` (short only at end of file)."""
        if offset < 0 or length < 0:
            raise ValueError("offset and length must be non-negative")
        if length == 0:
            return b""
        if self.total_size is not None:
            if offset >= self.total_size:
                return b""
            length = min(length, self.total_size - offset)

        first = offset // self.chunk_size
        last = (offset + length - 1) // self.chunk_size
        index = first
        while index <= last:
            if index in self._chunks:
                index += 1
                continue
            last_known = self._last_chunk_index()
            if last_known is not None and index > last_known:
                break
            run_end = index
            while run_end + 1 <= last and (run_end + 1) not in self._chunks:
                run_end += 1
            await self._fetch(index, run_end)
            if index not in self._chunks:
                # Past the end of the file.
                break
            index += 1

        data = b"".join(self._chunks.get(i, b"") for i in range(first, last + 1))
        start = offset - first * self.chunk_size
        return data[start:start + length]

    async def _fetch(self, first: int, last: int) -> None:
        needed = last - first + 1
        span = max(needed, self.read_ahead_chunks)
        end_chunk = first + span - 1
        last_known = self._last_chunk_index()
        if last_known is not None:
            end_chunk = max(last, min(end_chunk, last_known))
        # Read-ahead stops at the first chunk that is already cached.
        for i in range(last + 1, end_chunk + 1):
            if i in self._chunks:
                end_chunk = i - 1
                break
        # Read-ahead never pushes a fetch over the byte ceiling.
        affordable = self.remaining_budget // self.chunk_size
        if end_chunk - first + 1 > affordable:
            end_chunk = max(last, first + affordable - 1)

        start_byte = first * self.chunk_size
        end_byte = (end_chunk + 1) * self.chunk_size - 1
        if self.total_size is not None:
            end_byte = min(end_byte, self.total_size - 1)
        requested = end_byte - start_byte + 1
        if requested > self.remaining_budget:
            raise TransportError(
                f"Reading bytes {start_byte}-{end_byte} of {self.url} would exceed "
                f"the {self.max_bytes}-byte read limit ({self.bytes_read} already read)"
            )

        headers = {"Range": f"bytes={start_byte}-{end_byte}"}
        try:
            resp = await self._client.get(self.url, headers=headers)
        except httpx.HTTPError as exc:
            raise TransportError(f"Range request to {self.url} failed: {exc}") from exc
        self.requests_made += 1

        if resp.status_code == 416:
            # Requested range starts past the end of the file.
            self._learn_size_from(resp)
            if self.total_size is None:
                self.total_size = start_byte
            return
        if resp.status_code not in (200, 206):
            raise TransportError(f"Range request to {self.url} returned HTTP {resp.status_code}")

        body = resp.content
        self.bytes_read += len(body)
        if self.bytes_read > self.max_bytes:
            raise TransportError(
                f"Read {self.bytes_read} bytes from {self.url}, over the {self.max_bytes}-byte limit"
            )

        if resp.status_code == 200:
            logger.warning("Server ignored Range header for %s; received full body (%d bytes)", self.url, len(body))
            self.total_size = len(body)
            self._store(0, body)
            return

        body_start = self._learn_size_from(resp)
        if body_start is None:
            body_start = start_byte
        if body_start % self.chunk_size:
            raise TransportError(f"Unaligned partial response from {self.url} (starts at byte {body_start})")
        self._store(body_start // self.chunk_size, body)
        if self.total_size is None and len(body) < requested:
            self.total_size = body_start + len(body)
        logger.debug(
            "Fetched bytes %d-%d of %s (%d bytes, %d total)",
            body_start, body_start + len(body) - 1, self.url, len(body), self.bytes_read,
        )

    def _learn_size_from(self, resp: httpx.Response) -> Optional[int]:
        match = _CONTENT_RANGE.match(resp.headers.get("content-range", ""))
        if match is None:
            total = re.search(r"/(\d+)$", resp.headers.get("content-range", ""))
            if total:
                self.total_size = int(total.group(1))
            return None
        if match.group(3) != "*":
            self.total_size = int(match.group(3))
        return int(match.group(1))

    def _store(self, first_index: int, body: bytes) -> None:
        for pos in range(0, len(body), self.chunk_size):
            index = first_index + pos // self.chunk_size
            if index not in self._chunks:
                self._chunks[index] = body[pos:pos + self.chunk_size]
