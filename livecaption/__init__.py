"""Pipe raw audio from standard input to a streaming speech recognizer.

There are two major components of this toolkit:
:class:`audio.AudioSource` and
:class:`transcriber.Transcriber`.

A :class:`transcriber.Transcriber` obtains audio from an
:class:`audio.AudioSource`, streams it to a recognition service, and emits
a :class:`transcriber.TranscribeEvent` whenever a result arrives.
"""
