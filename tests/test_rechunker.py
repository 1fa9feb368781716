"""Tests for the byte re-chunker."""

import math
import random

import pytest

from relaybot.services.rechunker import Rechunker

C = 64


async def fragments(data: bytes, sizes):
    """Yield `data` in fragments whose sizes cycle through `sizes`."""
    pos = 0
    i = 0
    while pos < len(data):
        n = sizes[i % len(sizes)]
        yield data[pos:pos + n]
        pos += n
        i += 1


async def collect(data: bytes, sizes, chunk_size: int = C):
    rechunker = Rechunker(fragments(data, sizes), chunk_size)
    chunks = [chunk async for chunk in rechunker.chunks()]
    return rechunker, chunks


def payload(length: int) -> bytes:
    rng = random.Random(length)
    return bytes(rng.getrandbits(8) for _ in range(length))


class TestChunkShape:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("length", [0, 1, C - 1, C, C + 1, 3 * C, 10 * C + 7])
    @pytest.mark.parametrize("sizes", [[1], [7, 13, 2], [C], [3 * C + 1], [C - 1, 2 * C + 5]])
    async def test_sizes_offsets_and_last_flag(self, length, sizes):
        data = payload(length)
        rechunker, chunks = await collect(data, sizes)

        expected_count = max(1, math.ceil(length / C))
        assert len(chunks) == expected_count

        for chunk in chunks[:-1]:
            assert chunk.size == C
        last_size = length % C or (C if length else 0)
        assert chunks[-1].size == last_size

        assert [c.is_last for c in chunks].count(True) == 1
        assert chunks[-1].is_last

        assert [c.offset for c in chunks] == [i * C for i in range(expected_count)]
        assert b"".join(c.data for c in chunks) == data

    @pytest.mark.asyncio
    async def test_exact_multiple_flags_full_final_chunk(self):
        _, chunks = await collect(payload(3 * C), [10])
        assert [c.size for c in chunks] == [C, C, C]
        assert [c.is_last for c in chunks] == [False, False, True]

    @pytest.mark.asyncio
    async def test_short_stream_yields_single_undersized_chunk(self):
        _, chunks = await collect(b"hello", [2])
        assert len(chunks) == 1
        assert chunks[0].data == b"hello"
        assert chunks[0].is_last

    @pytest.mark.asyncio
    async def test_empty_fragments_are_ignored(self):
        async def source():
            yield b""
            yield b"a" * C
            yield b""
            yield b"b"

        chunks = [c async for c in Rechunker(source(), C).chunks()]
        assert [c.size for c in chunks] == [C, 1]


class TestMemoryBound:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("sizes", [[1], [C + 1], [5 * C], [17, 4 * C, 3]])
    async def test_buffer_never_exceeds_two_chunks(self, sizes):
        rechunker, _ = await collect(payload(20 * C + 11), sizes)
        assert 0 < rechunker.high_water <= 2 * C

    @pytest.mark.asyncio
    async def test_full_chunks_leave_before_stream_ends(self):
        """A chunk is released as soon as one more byte has arrived."""
        seen = []

        async def source():
            yield b"x" * C
            seen.append("after-first")
            yield b"y"
            seen.append("after-second")

        rechunker = Rechunker(source(), C)
        gen = rechunker.chunks()
        first = await gen.__anext__()
        assert first.size == C and not first.is_last
        assert seen == ["after-first"]
        await gen.aclose()


class TestContract:
    def test_rejects_non_positive_chunk_size(self):
        with pytest.raises(ValueError):
            Rechunker(fragments(b"", [1]), 0)

    @pytest.mark.asyncio
    async def test_single_use(self):
        rechunker = Rechunker(fragments(b"abc", [1]), C)
        [c async for c in rechunker.chunks()]
        with pytest.raises(RuntimeError):
            [c async for c in rechunker.chunks()]
