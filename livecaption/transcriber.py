"""Transcription components

The main base class which is responsible for performing transcription is
:class:`Transcriber`. :class:`GoogleTranscriber` streams audio to the Google
Cloud Speech-to-Text streaming recognition API.
"""

import asyncio
import logging
import time

from google.api_core import client_options as client_options_lib
from google.api_core import exceptions
from google.cloud import speech

from livecaption import utils


LOG = logging.getLogger(__name__)


class TranscriptionError(Exception):
    pass


class AlreadyRunningError(TranscriptionError):
    def __init__(self):
        super(AlreadyRunningError, self).__init__(
            'Object started when it is already running'
        )


class StreamError(TranscriptionError):
    def __init__(self, cause):
        super(StreamError, self).__init__(
            'Cannot stream results: %s' % cause
        )
        self.cause = cause


class RecognitionError(TranscriptionError):
    def __init__(self, code, message):
        super(RecognitionError, self).__init__(
            'Could not recognize: code=%s message=%s' % (code, message)
        )
        self.code = code


class TranscribeResult(object):
    def __init__(self, transcript, confidence=None):
        self.transcript = transcript
        self.confidence = confidence

    def __str__(self):
        return 'TranscribeResult(transcript=%s, confidence=%s)' % (
            self.transcript, self.confidence
        )


class TranscribeEvent(object):
    def __init__(self, results, final):
        self.results = results
        self.final = final

    def __str__(self):
        ret = 'TranscribeEvent(results=[%s], final=%s)'
        results_str = ', '.join([str(x) for x in self.results])
        return ret % (results_str, self.final)


class GoogleTranscribeEvent(TranscribeEvent):
    """A single streaming recognition result.

    :parameter stability: Likelihood the service will not change an interim
        result, 0.0 for final results.
    :parameter raw: The ``StreamingRecognitionResult`` this event came from.
    :parameter received_at: Unix timestamp of when the result arrived.
    """
    def __init__(self, results, final, stability, raw=None,
                 received_at=None):
        super(GoogleTranscribeEvent, self).__init__(results, final)
        self.stability = stability
        self.raw = raw
        self.received_at = received_at or time.time()


class Transcriber(object):
    """Base class for implementing a transcriber.

    Once :func:`transcribe` is called a transcriber forwards chunks from an
    audio source to a transcription service while concurrently reading
    events back from it. The session lasts until the service closes the
    stream or :func:`stop` is called. Running out of audio does not end it,
    since results for the tail of the audio are still to come.

    :parameter source: Input audio source
    :type source: audio.AudioSource
    """
    def __init__(self, source):
        self._source = source
        self.running = False
        self._stop_requested = asyncio.Event()
        self._stopped_running = asyncio.Event()
        self._ev_handlers = []

    async def _start(self):
        if not self.running:
            self.running = True
            self._stop_requested.clear()
            self._stopped_running.clear()
        else:
            raise AlreadyRunningError()

    async def _finish(self):
        """Release session resources once both tasks have ended."""
        pass

    async def transcribe(self):
        await self._start()
        audio_task = asyncio.ensure_future(self._handle_audio())
        read_task = asyncio.ensure_future(self._read_events())
        stop_task = asyncio.ensure_future(self._stop_requested.wait())
        tasks = (audio_task, read_task, stop_task)
        try:
            pending = set(tasks)
            while read_task in pending and stop_task in pending:
                done, pending = await asyncio.wait(
                    pending,
                    return_when=asyncio.FIRST_COMPLETED
                )
                for fut in done:
                    if fut is stop_task:
                        continue
                    exc = fut.exception()
                    if exc:
                        raise exc
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            self.running = False
            try:
                await self._finish()
            finally:
                self._stopped_running.set()

    async def stop(self, wait=True):
        if self.running:
            self._stop_requested.set()
            if wait:
                await self._stopped_running.wait()

    def register_event_handler(self, handler):
        self._ev_handlers.append(handler)

    async def _handle_event(self, event):
        for handler in self._ev_handlers:
            await handler(event)

    async def _handle_audio(self):
        async with self._source.listen():
            async for chunk in self._source.chunks:
                await self._send_chunk(chunk)
        await self._send_complete()

    async def _send_chunk(self, audio_chunk):
        raise NotImplementedError()

    async def _send_complete(self):
        pass

    async def _read_events(self):
        raise NotImplementedError()


class GoogleTranscriber(Transcriber):
    """Transcriber for Google Cloud Speech-to-Text streaming recognition.

    The first request on the stream carries the recognition config, every
    following one carries a chunk of audio. Once the source runs dry the
    request stream ends, which tells the service no more audio is coming.

    :parameter source: Input audio source
    :type source: audio.AudioSource
    :parameter sample_rate: Sample frequency of the audio in hertz
    :type sample_rate: int
    :parameter language_code: BCP-47 language tag, e.g. ``en-US``
    :type language_code: str
    :parameter encoding: ``RecognitionConfig.AudioEncoding`` member name
    :type encoding: str
    :parameter interim_results: Ask for non-final hypotheses as well
    :type interim_results: bool
    :parameter single_utterance: Stop recognizing after the first utterance
    :type single_utterance: bool
    :parameter credentials_file: Service account json, default is to use
        application default credentials
    :type credentials_file: str
    :parameter api_endpoint: Override the service host
    :type api_endpoint: str
    :parameter client: Client to use instead of building one; it is not
        closed when the session ends
    :type client: speech.SpeechAsyncClient
    """
    def __init__(self, source, sample_rate=16000, language_code='en-US',
                 encoding='LINEAR16', interim_results=True,
                 single_utterance=False, credentials_file=None,
                 api_endpoint=None, client=None):
        super(GoogleTranscriber, self).__init__(source)
        try:
            self._encoding = speech.RecognitionConfig.AudioEncoding[encoding]
        except KeyError:
            raise ValueError('Unknown audio encoding: %s' % encoding)
        self._sample_rate = sample_rate
        self._language_code = language_code
        self._interim_results = interim_results
        self._single_utterance = single_utterance
        self._credentials_file = credentials_file
        self._api_endpoint = api_endpoint
        self._client = client
        self._owns_client = client is None
        self._request_queue = None

    def streaming_config(self):
        config = speech.RecognitionConfig(
            encoding=self._encoding,
            sample_rate_hertz=self._sample_rate,
            language_code=self._language_code,
        )
        return speech.StreamingRecognitionConfig(
            config=config,
            interim_results=self._interim_results,
            single_utterance=self._single_utterance,
        )

    def _make_client(self):
        options = None
        if self._api_endpoint:
            options = client_options_lib.ClientOptions(
                api_endpoint=self._api_endpoint
            )
        if self._credentials_file:
            return speech.SpeechAsyncClient.from_service_account_file(
                self._credentials_file, client_options=options
            )
        return speech.SpeechAsyncClient(client_options=options)

    async def _start(self):
        await super(GoogleTranscriber, self)._start()
        try:
            if self._client is None:
                self._client = self._make_client()
            self._request_queue = asyncio.Queue()
            await self._send_start()
        except Exception:
            self.running = False
            raise

    async def _finish(self):
        if self._owns_client and self._client is not None:
            client, self._client = self._client, None
            await client.transport.close()

    async def _send_start(self):
        LOG.info('sending init StreamingConfig...')
        await self._request_queue.put(speech.StreamingRecognizeRequest(
            streaming_config=self.streaming_config()
        ))

    async def _handle_audio(self):
        LOG.info('start sending to Speech API...')
        await super(GoogleTranscriber, self)._handle_audio()

    async def _send_chunk(self, audio_chunk):
        await self._request_queue.put(speech.StreamingRecognizeRequest(
            audio_content=bytes(audio_chunk.audio)
        ))

    async def _send_complete(self):
        LOG.debug('Audio exhausted, closing request stream')
        await self._request_queue.put(None)

    async def _requests(self):
        while True:
            try:
                request = await utils.interruptable_get(
                    self._request_queue, self._stop_requested
                )
            except utils.InterruptError:
                return
            if request is None:
                return
            yield request

    async def _read_events(self):
        try:
            responses = await self._client.streaming_recognize(
                requests=self._requests()
            )
            async for response in responses:
                await self._handle_response(response)
        except exceptions.GoogleAPICallError as e:
            raise StreamError(e)
        LOG.debug('Response stream closed')

    async def _handle_response(self, response):
        error = response.error
        if error is not None and error.code:
            raise RecognitionError(error.code, error.message)
        event_type = response.speech_event_type
        if event_type == (speech.StreamingRecognizeResponse.SpeechEventType
                          .END_OF_SINGLE_UTTERANCE):
            LOG.info('Service detected the end of a single utterance')
        for result in response.results:
            await self._handle_event(self._result_to_event(result))

    def _result_to_event(self, result):
        t_rs = [TranscribeResult(alt.transcript, alt.confidence)
                for alt in result.alternatives]
        return GoogleTranscribeEvent(t_rs, result.is_final, result.stability,
                                     raw=result)
