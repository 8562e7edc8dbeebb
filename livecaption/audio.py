"""Audio source components

The base class is :class:`AudioSource` which provides audio to a
:class:`livecaption.transcriber.Transcriber`. :class:`StdinSource` reads raw
audio from standard input.
"""


import collections
import functools
import io
import logging
import os
import sys
import threading
import time

import janus


LOG = logging.getLogger(__name__)


class NoMoreChunksError(Exception):
    pass


# Using a namedtuple for audio chunks due to their lightweight nature
AudioChunk = collections.namedtuple('AudioChunk',
                                    ['start_time', 'audio', 'width', 'freq'])
"""A sequence of audio samples.

This is the object which is returned from :func:`AudioSource.get_chunk`.

:param start_time: Unix timestamp of the moment the chunk was read.
:type start_time: float
:param audio: Raw audio bytes, passed through untouched.
:type audio: bytes
:param width: Number of bytes per sample.
:type width: int
:param freq: Sampling frequency.
:type freq: int
"""


class _ListenCtxtMgr(object):
    def __init__(self, source):
        self._source = source

    async def __aenter__(self):
        await self._source.start()

    async def __aexit__(self, *args):
        await self._source.stop()


class AudioSourceChunkIterator(object):
    """Iterate over the chunks in an :class:`AudioSource`

    :param source: Source to iterate over.
    :type source: AudioSource
    """
    def __init__(self, source):
        self._source = source

    def __aiter__(self):
        return self

    async def __anext__(self):
        try:
            return await self._source.get_chunk()
        except NoMoreChunksError:
            raise StopAsyncIteration('No more chunks')


class AudioSource(object):
    """Base class for providing audio.

    Subclasses should override :func:`get_chunk` to await until it can return
    an :class:`AudioChunk`, and raise :class:`NoMoreChunksError` once the
    input is exhausted.
    """
    def __init__(self):
        self.running = False

    @property
    def chunks(self):
        """Async iterator over get_chunk"""
        return AudioSourceChunkIterator(self)

    def listen(self):
        """Listen to the AudioSource.

        :ret: Async context manager which starts and stops the AudioSource.
        """
        return _ListenCtxtMgr(self)

    async def start(self):
        """Start the audio source.

        This is where opening of inputs should happen.
        """
        self.running = True

    async def stop(self):
        """Stop the audio source.

        This is where closing of inputs should happen.
        """
        self.running = False

    async def get_chunk(self):
        """Get the next audio chunk from the source.

        Subclasses should override this method.

        :ret: Next audio chunk.
        :rtype: AudioChunk
        """
        raise NotImplementedError()


class StdinSource(AudioSource):
    """Use standard input as an audio source.

    Reads block, so they happen on a background thread and are handed to the
    event loop through a janus queue. Each read returns at most chunk_size
    bytes; short reads are passed along as they are.

    :parameter fp: Binary file object to read, default ``sys.stdin.buffer``
    :type fp: file
    :parameter chunk_size: Maximum number of bytes per read
    :type chunk_size: int
    :parameter width: Bytes per sample of the incoming audio
    :type width: int
    :parameter rate: Sample frequency of the incoming audio
    :type rate: int
    """
    def __init__(self, fp=None, chunk_size=1024, width=2, rate=16000):
        super(StdinSource, self).__init__()
        if chunk_size <= 0:
            raise ValueError('chunk_size must be positive, got %r' %
                             chunk_size)
        self._fp = fp
        self._chunk_size = chunk_size
        self._width = width
        self._rate = rate
        self._queue = None
        self._reader = None

    async def start(self):
        await super(StdinSource, self).start()
        self._queue = janus.Queue()
        self._reader = threading.Thread(target=self._read_loop,
                                        name='livecaption-stdin',
                                        daemon=True)
        self._reader.start()

    async def stop(self):
        await super(StdinSource, self).stop()
        if self._queue is not None:
            self._queue.close()
            await self._queue.wait_closed()

    async def get_chunk(self):
        read_time, data = await self._queue.async_q.get()
        if data is None:
            raise NoMoreChunksError('End of input')
        return AudioChunk(start_time=read_time, audio=data,
                          width=self._width, freq=self._rate)

    def _read_fn(self):
        fp = self._fp or sys.stdin.buffer
        try:
            fd = fp.fileno()
        except (AttributeError, io.UnsupportedOperation):
            return getattr(fp, 'read1', fp.read)
        # Unbuffered; a BufferedReader holds its lock across a blocking read
        return functools.partial(os.read, fd)

    def _read_loop(self):
        read = self._read_fn()
        while self.running:
            try:
                data = read(self._chunk_size)
            except OSError as e:
                LOG.warning('Could not read from stdin: %s', e)
                continue
            if not data:
                LOG.debug('End of input reached')
                self._put(None)
                return
            if not self._put(data):
                return

    def _put(self, data):
        try:
            self._queue.sync_q.put((time.time(), data))
        except RuntimeError:
            # Queue closed by stop()
            LOG.debug('Source stopped, discarding %s',
                      'end of input' if data is None else
                      '%d bytes' % len(data))
            return False
        return True
