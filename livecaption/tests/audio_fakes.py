import asyncio
import time

from livecaption import audio


class SilentAudioSource(audio.AudioSource):
    """Endless source of silence, one chunk every chunk_rate seconds."""
    def __init__(self, chunk_rate=.1, sample_rate=16000):
        super(SilentAudioSource, self).__init__()
        self._chunk_rate = chunk_rate
        self._sample_rate = sample_rate
        self.chunk_cnt = 0

    async def get_chunk(self):
        await asyncio.sleep(self._chunk_rate)
        self.chunk_cnt += 1
        sample_cnt = int(self._chunk_rate * self._sample_rate)
        return audio.AudioChunk(start_time=time.time(),
                                audio=b'\0\0' * sample_cnt,
                                width=2, freq=self._sample_rate)


class ListAudioSource(audio.AudioSource):
    """Source which emits a fixed list of byte strings, then ends."""
    def __init__(self, blobs):
        super(ListAudioSource, self).__init__()
        self._blobs = list(blobs)
        self.started = False
        self.stopped = False

    async def start(self):
        await super(ListAudioSource, self).start()
        self.started = True

    async def stop(self):
        await super(ListAudioSource, self).stop()
        self.stopped = True

    async def get_chunk(self):
        if not self._blobs:
            raise audio.NoMoreChunksError('No more blobs')
        return audio.AudioChunk(time.time(), self._blobs.pop(0), 2, 16000)


class BrokenAudioSource(audio.AudioSource):
    """Source whose input fails after the first chunk."""
    def __init__(self):
        super(BrokenAudioSource, self).__init__()
        self._served = False

    async def get_chunk(self):
        if self._served:
            raise IOError('device gone')
        self._served = True
        return audio.AudioChunk(time.time(), b'\0\0', 2, 16000)
