import asyncio
import io
import os

from livecaption import audio
from livecaption.tests import base


class FlakyReader(object):
    """Raises OSError on the first read, then behaves like BytesIO."""
    def __init__(self, data):
        self._data = io.BytesIO(data)
        self.failures = 0

    def read(self, size):
        if not self.failures:
            self.failures += 1
            raise OSError('Resource temporarily unavailable')
        return self._data.read(size)


class StdinSourceTestCase(base.TestCase):
    async def _read_all(self, src):
        chunks = []
        async with src.listen():
            async for chunk in src.chunks:
                chunks.append(chunk)
        return chunks

    @base.asynctest
    async def test_fixed_size_chunks(self):
        data = bytes(range(256)) * 10
        src = audio.StdinSource(io.BytesIO(data), chunk_size=1024)
        chunks = await self._read_all(src)

        self.assertEqual([1024, 1024, 512], [len(c.audio) for c in chunks])
        self.assertEqual(data, b''.join(c.audio for c in chunks))
        for chunk in chunks:
            self.assertEqual(2, chunk.width)
            self.assertEqual(16000, chunk.freq)

    @base.asynctest
    async def test_rate_passed_to_chunks(self):
        src = audio.StdinSource(io.BytesIO(b'\0' * 10), rate=8000)
        chunks = await self._read_all(src)
        self.assertEqual(1, len(chunks))
        self.assertEqual(8000, chunks[0].freq)

    @base.asynctest
    async def test_empty_input(self):
        src = audio.StdinSource(io.BytesIO(b''))
        chunks = await self._read_all(src)
        self.assertEqual([], chunks)
        self.assertFalse(src.running)

    @base.asynctest
    async def test_read_error_continues(self):
        reader = FlakyReader(b'\1\2' * 100)
        src = audio.StdinSource(reader, chunk_size=64)
        chunks = await self._read_all(src)
        self.assertEqual(1, reader.failures)
        self.assertEqual(b'\1\2' * 100, b''.join(c.audio for c in chunks))

    @base.asynctest
    async def test_no_more_chunks(self):
        src = audio.StdinSource(io.BytesIO(b'abcd'))
        async with src.listen():
            chunk = await src.get_chunk()
            self.assertEqual(b'abcd', chunk.audio)
            with self.assertRaises(audio.NoMoreChunksError):
                await asyncio.wait_for(src.get_chunk(), 1)

    def test_invalid_chunk_size(self):
        self.assertRaises(ValueError, audio.StdinSource, io.BytesIO(), 0)

    @base.asynctest
    async def test_reads_descriptor(self):
        read_fd, write_fd = os.pipe()
        os.write(write_fd, b'\1' * 3000)
        os.close(write_fd)
        with os.fdopen(read_fd, 'rb') as fp:
            src = audio.StdinSource(fp, chunk_size=1024)
            chunks = await self._read_all(src)
        self.assertTrue(all(len(c.audio) <= 1024 for c in chunks))
        self.assertEqual(b'\1' * 3000, b''.join(c.audio for c in chunks))
