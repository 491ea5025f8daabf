"""
Text-to-speech playback using Google Cloud TTS.
"""
import io
import logging
import threading
import wave
from typing import Optional

from google.api_core import exceptions as google_exceptions
from google.cloud import texttospeech

from ...config import TTS_VOICE, TTS_SPEAKING_RATE, LANGUAGE_CODE, PLAYBACK_CHUNK_FRAMES
from ...interview.services import PlaybackErrorKind, PlaybackListener, SpeechPlaybackService

logger = logging.getLogger("speech_tts")


class GoogleTTSPlayback(SpeechPlaybackService):
    """
    High-quality Google Cloud Text-to-Speech through PyAudio.

    Audio is written in small chunks so `cancel` takes effect within one
    chunk.
    """

    def __init__(self,
                 voice: str = TTS_VOICE,
                 speaking_rate: float = TTS_SPEAKING_RATE,
                 language_code: str = LANGUAGE_CODE,
                 output_device: Optional[int] = None):
        self.voice = voice
        self.speaking_rate = speaking_rate
        self.language_code = language_code
        self.output_device = output_device
        self._client: Optional[texttospeech.TextToSpeechClient] = None
        self._cancel: Optional[threading.Event] = None
        self._lock = threading.Lock()

    def speak(self, text: str, listener: PlaybackListener) -> None:
        cancel = threading.Event()
        with self._lock:
            if self._cancel is not None:
                self._cancel.set()
            self._cancel = cancel

        thread = threading.Thread(
            target=self._run, args=(text, cancel, listener), name="speech-playback", daemon=True
        )
        thread.start()

    def cancel(self) -> None:
        with self._lock:
            if self._cancel is not None:
                self._cancel.set()

    def _get_client(self) -> texttospeech.TextToSpeechClient:
        if self._client is None:
            self._client = texttospeech.TextToSpeechClient()
        return self._client

    def synthesize(self, text: str) -> bytes:
        """Return LINEAR16 WAV bytes for `text`."""
        response = self._get_client().synthesize_speech(
            input=texttospeech.SynthesisInput(text=text),
            voice=texttospeech.VoiceSelectionParams(
                language_code=self.language_code,
                name=self.voice,
            ),
            audio_config=texttospeech.AudioConfig(
                audio_encoding=texttospeech.AudioEncoding.LINEAR16,
                speaking_rate=self.speaking_rate,
            ),
        )
        return response.audio_content

    def _run(self, text: str, cancel: threading.Event, listener: PlaybackListener) -> None:
        try:
            audio = self.synthesize(text)
        except google_exceptions.InvalidArgument as e:
            logger.error(f"Google TTS rejected the utterance: {e}")
            listener.error(PlaybackErrorKind.SYNTHESIS_FAILED)
            return
        except google_exceptions.GoogleAPICallError as e:
            logger.error(f"Google TTS failed: {e}")
            listener.error(PlaybackErrorKind.NETWORK)
            return
        except Exception as e:
            logger.error(f"Speech synthesis failed: {e}")
            listener.error(PlaybackErrorKind.SYNTHESIS_FAILED)
            return

        if cancel.is_set():
            listener.error(PlaybackErrorKind.INTERRUPTED)
            return

        try:
            completed = self._play(audio, cancel, listener)
        except OSError as e:
            logger.error(f"Audio output unavailable: {e}")
            listener.error(PlaybackErrorKind.AUDIO_BUSY)
            return
        except Exception as e:
            logger.error(f"Playback failed: {e}")
            listener.error(PlaybackErrorKind.UNKNOWN)
            return
        finally:
            with self._lock:
                if self._cancel is cancel:
                    self._cancel = None

        if completed:
            listener.ended()
        else:
            logger.info("Playback cancelled")
            listener.error(PlaybackErrorKind.INTERRUPTED)

    def _play(self, audio: bytes, cancel: threading.Event, listener: PlaybackListener) -> bool:
        import pyaudio

        with wave.open(io.BytesIO(audio), "rb") as wav:
            pa = pyaudio.PyAudio()
            try:
                stream = pa.open(
                    format=pa.get_format_from_width(wav.getsampwidth()),
                    channels=wav.getnchannels(),
                    rate=wav.getframerate(),
                    output=True,
                    output_device_index=self.output_device,
                )
                try:
                    listener.started()
                    data = wav.readframes(PLAYBACK_CHUNK_FRAMES)
                    while data:
                        if cancel.is_set():
                            return False
                        stream.write(data)
                        data = wav.readframes(PLAYBACK_CHUNK_FRAMES)
                    return True
                finally:
                    stream.stop_stream()
                    stream.close()
            finally:
                pa.terminate()


class ConsolePlayback(SpeechPlaybackService):
    """Text mode: print each utterance instead of speaking it."""

    def speak(self, text: str, listener: PlaybackListener) -> None:
        listener.started()
        print(f"🤖 {text}")
        listener.ended()

    def cancel(self) -> None:
        pass
