"""Pipe stdin audio data to the Google Speech API and print the transcript.

As an example, gst-launch can capture microphone input on Linux::

    gst-launch-1.0 -q alsasrc ! audioconvert ! audioresample ! \\
        audio/x-raw,format=S16LE,channels=1,rate=16000 ! \\
        filesink location=/dev/stdout | livecaption
"""

import argparse
import asyncio
import logging
import sys
import time

from google.auth import exceptions as auth_exceptions
from google.protobuf import text_format

from livecaption import audio
from livecaption import transcriber


LOG = logging.getLogger(__name__)

DEFAULT_DEADLINE = 205
RFC850_FORMAT = '%A, %d-%b-%y %H:%M:%S %Z'


def parse_args(argv):
    parser = argparse.ArgumentParser(
        description='Stream stdin audio to Google Speech and print the '
                    'transcript to stderr.')

    parser.add_argument('-r', '--rate',
                        help='Sample rate of the incoming audio in hertz.',
                        default=16000,
                        type=int)
    parser.add_argument('-l', '--language',
                        help='Language of the speech, as a BCP-47 tag.',
                        default='en-US',
                        type=str)
    parser.add_argument('-e', '--encoding',
                        help='Encoding of the incoming audio.',
                        default='LINEAR16',
                        type=str)
    parser.add_argument('-b', '--buffer-size',
                        help='Maximum number of bytes to forward per read.',
                        default=1024,
                        type=int)
    parser.add_argument('-d', '--deadline',
                        help='Seconds before the session is ended.',
                        default=DEFAULT_DEADLINE,
                        type=float)
    parser.add_argument('--single-utterance',
                        help='Stop recognizing after the first utterance.',
                        action='store_true')
    parser.add_argument('--no-interim-results',
                        help='Only print final results.',
                        dest='interim_results',
                        action='store_false')
    parser.add_argument('--credentials',
                        help='Service account json file. Application default '
                             'credentials are used when omitted.',
                        type=str)
    parser.add_argument('--endpoint',
                        help='Speech API host to connect to.',
                        type=str)
    parser.add_argument('-v', '--verbose',
                        help='Log debugging output.',
                        action='store_true')
    return parser.parse_args(argv)


def exit(error):
    print("ERROR: %s" % error, file=sys.stderr)
    sys.exit(1)


def setup_logging(verbose=False):
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter('%(message)s'))
    root = logging.getLogger('livecaption')
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if verbose else logging.INFO)


class TranscriptPrinter(object):
    """Print transcribe events as they arrive.

    Final results print every alternative with its confidence, interim ones
    print a timestamped dump of the raw result.
    """
    def __init__(self, stream=None):
        self._stream = stream or sys.stderr

    async def handle(self, ev):
        if ev.final:
            for result in ev.results:
                self._write('\n\nGOT: { %s } ,\ncorrect= %f %%\n\n' % (
                    result.transcript, result.confidence or 0.0))
        else:
            stamp = time.strftime(RFC850_FORMAT,
                                  time.localtime(ev.received_at))
            self._write('%s receive= %s\n' % (stamp, dump_raw(ev.raw)))

    def _write(self, text):
        self._stream.write(text)
        self._stream.flush()


def dump_raw(raw):
    return text_format.MessageToString(type(raw).pb(raw), as_one_line=True)


async def timeout(ts, secs):
    await asyncio.sleep(secs)
    LOG.info('Deadline of %s seconds reached', secs)
    await ts.stop(wait=False)


async def run_transcription(ts, deadline):
    timer = asyncio.ensure_future(timeout(ts, deadline))
    try:
        await ts.transcribe()
    finally:
        timer.cancel()


def transcribe(args):
    if args.deadline <= 0:
        exit(error='Deadline must be positive.')

    try:
        src = audio.StdinSource(chunk_size=args.buffer_size, rate=args.rate)
        ts = transcriber.GoogleTranscriber(
            src,
            sample_rate=args.rate,
            language_code=args.language,
            encoding=args.encoding,
            interim_results=args.interim_results,
            single_utterance=args.single_utterance,
            credentials_file=args.credentials,
            api_endpoint=args.endpoint
        )
    except ValueError as e:
        exit(error=e)

    printer = TranscriptPrinter()
    ts.register_event_handler(printer.handle)

    try:
        asyncio.run(run_transcription(ts, args.deadline))
    except (transcriber.TranscriptionError,
            auth_exceptions.DefaultCredentialsError) as e:
        exit(error=e)


def main(argv=None):
    args = parse_args(sys.argv[1:] if argv is None else argv)
    setup_logging(args.verbose)
    transcribe(args)
