"""Shared, init-once access to the funding SQLite dataset.

Remote datasets (http/https URLs) are streamed with chunk-aligned range
requests into a private temporary file bounded by the configured byte ceiling;
local paths are opened in place. Either way the file is opened read-only and
immutable, and every query runs on a worker thread behind a single lock.
"""

from __future__ import annotations

import asyncio
import logging
import os
import sqlite3
import tempfile
from pathlib import Path
from typing import Any, List, Optional, Sequence, Tuple

import httpx

from funding_core.config import DatasetConfig
from funding_core.errors import InitError, QueryError, QueryErrorKind, TransportError
from funding_core.rangefile import RangeReader

logger = logging.getLogger(__name__)

SQLITE_MAGIC = b"SQLite format 3\x00"
SQLITE_HEADER_SIZE = 100

RawRow = Tuple[Any, ...]


def parse_sqlite_header(header: bytes) -> Tuple[int, int]:
    """Return (page_size, page_count) from the 100-byte SQLite file header."""
    if len(header) < SQLITE_HEADER_SIZE or not header.startswith(SQLITE_MAGIC):
        raise InitError("Dataset is not a SQLite database (bad header)")
    page_size = int.from_bytes(header[16:18], "big")
    if page_size == 1:
        page_size = 65536
    page_count = int.from_bytes(header[28:32], "big")
    return page_size, page_count


class DataSource:
    def __init__(self, config: DatasetConfig, *, client: Optional[httpx.AsyncClient] = None) -> None:
        self.config = config
        self._client = client
        self._conn: Optional[sqlite3.Connection] = None
        self._init_task: Optional[asyncio.Future] = None
        self._lock = asyncio.Lock()
        self._temp_path: Optional[Path] = None
        self.bytes_read = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def status(self) -> str:
        task = self._init_task
        if task is None:
            return "idle"
        if not task.done():
            return "initializing"
        if task.cancelled() or task.exception() is not None:
            return "failed"
        return "ready"

    @property
    def is_ready(self) -> bool:
        return self.status == "ready" and self._conn is not None

    @property
    def init_error(self) -> Optional[BaseException]:
        task = self._init_task
        if task is None or not task.done() or task.cancelled():
            return None
        return task.exception()

    async def initialize(self) -> None:
        """Attach to the dataset once; every caller shares the same outcome."""
        if self._init_task is None:
            self._init_task = asyncio.ensure_future(self._initialize())
        await asyncio.shield(self._init_task)

    def reset(self) -> None:
        """Forget a failed initialization so the next initialize() retries."""
        if self.status == "failed":
            logger.info("Resetting failed dataset initialization for %s", self.config.url)
            self._init_task = None

    async def close(self) -> None:
        if self._conn is not None:
            # Waits for a worker thread still running a timed-out query.
            async with self._lock:
                self._conn.close()
                self._conn = None
        self._discard_temp()
        self._init_task = None

    def _discard_temp(self) -> None:
        if self._temp_path is not None:
            self._temp_path.unlink(missing_ok=True)
            self._temp_path = None

    async def _initialize(self) -> None:
        cfg = self.config
        try:
            if cfg.is_remote:
                path = await self._download()
            else:
                path = Path(cfg.url)
                if not path.is_file():
                    raise InitError(f"Dataset file not found: {path}")
            self._conn = await asyncio.to_thread(self._connect, path)
        except InitError:
            self._discard_temp()
            raise
        except (TransportError, OSError, sqlite3.Error) as exc:
            self._discard_temp()
            raise InitError(f"Could not attach dataset {cfg.url}: {exc}") from exc
        logger.info("Dataset %s ready (table=%s, %d bytes fetched)", cfg.url, cfg.table, self.bytes_read)

    async def _download(self) -> Path:
        cfg = self.config
        client = self._client or httpx.AsyncClient(timeout=cfg.http_timeout, follow_redirects=True)
        try:
            reader = RangeReader(
                client,
                cfg.url,
                chunk_size=cfg.request_chunk_size,
                max_bytes=cfg.max_bytes_to_read,
                read_ahead_chunks=cfg.read_ahead_chunks,
            )
            page_size, page_count = parse_sqlite_header(await reader.read(0, SQLITE_HEADER_SIZE))
            db_size = page_size * page_count if page_count else reader.total_size
            if not db_size:
                raise InitError(f"Could not determine the size of {cfg.url}")
            if db_size > cfg.max_bytes_to_read:
                raise InitError(
                    f"Dataset {cfg.url} is {db_size} bytes, over the {cfg.max_bytes_to_read}-byte read limit"
                )

            fd, name = tempfile.mkstemp(prefix="funding-", suffix=".sqlite")
            self._temp_path = Path(name)
            step = cfg.request_chunk_size * cfg.read_ahead_chunks
            with os.fdopen(fd, "wb") as fh:
                offset = 0
                while offset < db_size:
                    data = await reader.read(offset, min(step, db_size - offset))
                    if not data:
                        raise InitError(f"Dataset {cfg.url} ended at byte {offset}, expected {db_size}")
                    fh.write(data)
                    offset += len(data)
            self.bytes_read = reader.bytes_read
            logger.info(
                "Fetched %s: %d bytes in %d range requests (page_size=%d)",
                cfg.url, reader.bytes_read, reader.requests_made, page_size,
            )
            return self._temp_path
        finally:
            if self._client is None:
                await client.aclose()

    def _connect(self, path: Path) -> sqlite3.Connection:
        uri = f"{path.resolve().as_uri()}?mode=ro&immutable=1"
        conn = sqlite3.connect(uri, uri=True, check_same_thread=False)
        try:
            found = conn.execute(
                "SELECT 1 FROM sqlite_master WHERE type IN ('table', 'view') AND name = ?",
                (self.config.table,),
            ).fetchone()
        except sqlite3.Error:
            conn.close()
            raise
        if found is None:
            conn.close()
            raise InitError(f"Table {self.config.table!r} not found in {self.config.url}")
        return conn

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def execute(self, query_text: str, params: Sequence[Any] = ()) -> List[RawRow]:
        if not self.is_ready:
            raise QueryError("Dataset is not initialized", kind=QueryErrorKind.NOT_READY)
        timeout = self.config.query_timeout
        try:
            return await asyncio.wait_for(self._execute_serialized(query_text, tuple(params)), timeout=timeout)
        except asyncio.TimeoutError:
            raise QueryError(f"Query did not finish within {timeout}s", kind=QueryErrorKind.TIMEOUT) from None

    async def _execute_serialized(self, query_text: str, params: Tuple[Any, ...]) -> List[RawRow]:
        await self._lock.acquire()
        # The lock is released only when the worker thread returns, so a timed-out
        # caller never lets a second query onto the connection.
        worker = asyncio.ensure_future(asyncio.to_thread(self._run, query_text, params))
        worker.add_done_callback(self._worker_done)
        try:
            return await asyncio.shield(worker)
        except sqlite3.Error as exc:
            raise QueryError(str(exc), kind=QueryErrorKind.ENGINE) from exc

    def _worker_done(self, worker: asyncio.Future) -> None:
        self._lock.release()
        if not worker.cancelled() and worker.exception() is not None:
            logger.debug("Query worker finished with %r", worker.exception())

    def _run(self, query_text: str, params: Tuple[Any, ...]) -> List[RawRow]:
        conn = self._conn
        if conn is None:
            raise sqlite3.ProgrammingError("Dataset connection is closed")
        return [tuple(row) for row in conn.execute(query_text, params).fetchall()]
