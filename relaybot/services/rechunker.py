"""
Repacks a network byte stream into fixed-size upload chunks.

The source hands over fragments of whatever size the socket produced. The
file host wants every chunk except the last to be exactly `chunk_size` bytes,
and it wants to be told which chunk is the last. A chunk is only released
once at least one byte beyond it has been seen (or the stream has ended), so
`is_last` is always known at emit time without trusting Content-Length.

Internal buffering stays under 2 × chunk_size: oversized fragments are fed in
chunk_size slices and full chunks leave the buffer as soon as they can.
"""

from typing import AsyncIterator

from relaybot.services.models import Chunk


class Rechunker:
    def __init__(self, source: AsyncIterator[bytes], chunk_size: int):
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self._source = source
        self.chunk_size = chunk_size
        self._buffer = bytearray()
        self._offset = 0
        self._started = False
        # Largest the buffer has ever been; exposed for diagnostics
        self.high_water = 0

    async def chunks(self) -> AsyncIterator[Chunk]:
        if self._started:
            raise RuntimeError("Rechunker is single-use; create a new one per stream")
        self._started = True

        size = self.chunk_size
        async for fragment in self._source:
            if not fragment:
                continue
            view = memoryview(fragment)
            for start in range(0, len(view), size):
                self._buffer += view[start:start + size]
                self.high_water = max(self.high_water, len(self._buffer))
                # Strictly greater: there is at least one byte after this chunk
                while len(self._buffer) > size:
                    yield self._take(size, is_last=False)

        yield self._take(len(self._buffer), is_last=True)

    def _take(self, n: int, is_last: bool) -> Chunk:
        data = bytes(self._buffer[:n])
        del self._buffer[:n]
        chunk = Chunk(offset=self._offset, data=data, is_last=is_last)
        self._offset += n
        return chunk
