from __future__ import annotations

import asyncio
import logging

import httpx
import pytest

from funding_core.errors import TransportError
from funding_core.rangefile import RangeReader
from funding_fixtures import RangeServer

URL = "https://data.example/funding-lite.sqlite"
DATA = bytes(range(256)) * 40  # 10240 bytes


def reader_for(server, **kwargs):
    client = server.client()
    kwargs.setdefault("chunk_size", 1024)
    kwargs.setdefault("read_ahead_chunks", 1)
    return client, RangeReader(client, URL, **kwargs)


def run(coro):
    return asyncio.run(coro)


def test_reads_are_chunk_aligned_and_cached():
    server = RangeServer(DATA)

    async def main():
        client, reader = reader_for(server)
        try:
            assert await reader.read(100, 50) == DATA[100:150]
            assert await reader.read(120, 10) == DATA[120:130]
            assert await reader.read(1000, 100) == DATA[1000:1100]
        finally:
            await client.aclose()
        return reader

    reader = run(main())
    assert server.requests == ["bytes=0-1023", "bytes=1024-2047"]
    assert reader.requests_made == 2
    assert reader.bytes_read == 2048
    assert reader.total_size == len(DATA)


def test_read_ahead_fetches_following_chunks():
    server = RangeServer(DATA)

    async def main():
        client, reader = reader_for(server, read_ahead_chunks=4)
        try:
            assert await reader.read(0, 10) == DATA[:10]
            assert await reader.read(3000, 1000) == DATA[3000:4000]
        finally:
            await client.aclose()

    run(main())
    assert server.requests == ["bytes=0-4095"]


def test_read_ahead_stops_at_cached_chunk():
    server = RangeServer(DATA)

    async def main():
        client, reader = reader_for(server, read_ahead_chunks=4)
        try:
            await reader.read(2048, 10)
            await reader.read(0, 10)
        finally:
            await client.aclose()

    run(main())
    assert server.requests == ["bytes=2048-6143", "bytes=0-2047"]


def test_short_read_at_end_of_file():
    data = DATA[:2500]
    server = RangeServer(data)

    async def main():
        client, reader = reader_for(server)
        try:
            tail = await reader.read(2000, 1000)
            past_end = await reader.read(3000, 10)
        finally:
            await client.aclose()
        return reader, tail, past_end

    reader, tail, past_end = run(main())
    assert tail == data[2000:]
    assert past_end == b""
    assert reader.total_size == 2500
    assert server.requests == ["bytes=1024-3071"]


def test_byte_ceiling_is_enforced_before_requesting():
    server = RangeServer(DATA)

    async def main():
        client, reader = reader_for(server, max_bytes=2048)
        try:
            await reader.read(0, 2048)
            with pytest.raises(TransportError, match="read limit"):
                await reader.read(2048, 10)
        finally:
            await client.aclose()
        return reader

    reader = run(main())
    assert len(server.requests) == 1
    assert reader.bytes_read == 2048
    assert reader.remaining_budget == 0


def test_read_ahead_shrinks_to_remaining_budget():
    server = RangeServer(DATA)

    async def main():
        client, reader = reader_for(server, max_bytes=3072, read_ahead_chunks=8)
        try:
            await reader.read(0, 10)
        finally:
            await client.aclose()

    run(main())
    assert server.requests == ["bytes=0-3071"]


def test_server_ignoring_range_returns_full_body(caplog):
    server = RangeServer(DATA, honor_range=False)

    async def main():
        client, reader = reader_for(server)
        try:
            first = await reader.read(1024, 10)
            second = await reader.read(5000, 10)
        finally:
            await client.aclose()
        return reader, first, second

    with caplog.at_level(logging.WARNING, logger="funding_core.rangefile"):
        reader, first, second = run(main())
    assert first == DATA[1024:1034]
    assert second == DATA[5000:5010]
    assert len(server.requests) == 1
    assert reader.total_size == len(DATA)
    assert "ignored Range header" in caplog.text


def test_full_body_over_ceiling_fails():
    server = RangeServer(DATA, honor_range=False)

    async def main():
        client, reader = reader_for(server, max_bytes=2048)
        try:
            with pytest.raises(TransportError, match="over the 2048-byte limit"):
                await reader.read(0, 10)
        finally:
            await client.aclose()

    run(main())


def test_error_status_raises_transport_error():
    server = RangeServer(DATA, status=500)

    async def main():
        client, reader = reader_for(server)
        try:
            with pytest.raises(TransportError, match="HTTP 500"):
                await reader.read(0, 10)
        finally:
            await client.aclose()

    run(main())


def test_network_failure_raises_transport_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async def main():
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        reader = RangeReader(client, URL, chunk_size=1024)
        try:
            with pytest.raises(TransportError, match="failed"):
                await reader.read(0, 10)
        finally:
            await client.aclose()

    run(main())


def test_invalid_read_arguments():
    server = RangeServer(DATA)

    async def main():
        client, reader = reader_for(server)
        try:
            assert await reader.read(0, 0) == b""
            with pytest.raises(ValueError):
                await reader.read(-1, 10)
        finally:
            await client.aclose()

    run(main())
    assert server.requests == []
