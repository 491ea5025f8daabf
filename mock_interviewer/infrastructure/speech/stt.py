"""
Streaming speech-to-text using Google Cloud Speech.
"""
import errno
import logging
import threading
from typing import Iterator, Optional

from google.api_core import exceptions as google_exceptions
from google.cloud import speech

from ...config import LANGUAGE_CODE, SAMPLE_RATE_CAPTURE, CAPTURE_CHUNK_MS
from ...interview.services import CaptureErrorKind, CaptureListener, SpeechCaptureService

logger = logging.getLogger("speech_stt")

# PortAudio paInvalidDevice and paDeviceUnavailable: the input device went away
PORTAUDIO_DEVICE_LOST = (-9996, -9985)


def is_device_lost(error: OSError) -> bool:
    """
    True when a microphone error means access to the device was lost.

    PyAudio raises OSError carrying the PortAudio error code among its
    args rather than an errno, so both forms are checked.
    """
    if error.errno in (errno.EACCES, errno.EPERM):
        return True
    return any(arg in PORTAUDIO_DEVICE_LOST for arg in error.args)


class _Attempt:
    """Stop/abort flags for one listening attempt."""

    def __init__(self):
        self.stop = threading.Event()
        self.aborted = threading.Event()


class GoogleStreamingCapture(SpeechCaptureService):
    """
    Microphone capture fed into Google streaming recognition.

    Each `start` opens the microphone on a worker thread and streams
    audio until `stop` or `abort`. Interim and final transcripts are
    reported to the listener as they arrive.
    """

    def __init__(self,
                 language_code: str = LANGUAGE_CODE,
                 sample_rate: int = SAMPLE_RATE_CAPTURE,
                 chunk_ms: int = CAPTURE_CHUNK_MS,
                 input_device: Optional[int] = None):
        self.language_code = language_code
        self.sample_rate = sample_rate
        self.frames_per_chunk = int(sample_rate * chunk_ms / 1000)
        self.input_device = input_device
        self._client: Optional[speech.SpeechClient] = None
        self._attempt: Optional[_Attempt] = None
        self._lock = threading.Lock()

    def is_supported(self) -> bool:
        try:
            import pyaudio  # noqa: F401
        except ImportError:
            logger.warning("PyAudio is not installed; speech capture unavailable")
            return False
        return True

    def start(self, listener: CaptureListener) -> None:
        attempt = _Attempt()
        with self._lock:
            if self._attempt is not None:
                logger.warning("Capture already running; aborting previous attempt")
                self._attempt.aborted.set()
                self._attempt.stop.set()
            self._attempt = attempt

        thread = threading.Thread(
            target=self._run, args=(attempt, listener), name="speech-capture", daemon=True
        )
        thread.start()

    def stop(self) -> None:
        with self._lock:
            if self._attempt is not None:
                self._attempt.stop.set()

    def abort(self) -> None:
        with self._lock:
            if self._attempt is not None:
                self._attempt.aborted.set()
                self._attempt.stop.set()

    def _get_client(self) -> speech.SpeechClient:
        if self._client is None:
            self._client = speech.SpeechClient()
        return self._client

    def _run(self, attempt: _Attempt, listener: CaptureListener) -> None:
        import pyaudio

        pa = pyaudio.PyAudio()
        stream = None
        try:
            stream = pa.open(
                format=pyaudio.paInt16,
                channels=1,
                rate=self.sample_rate,
                input=True,
                frames_per_buffer=self.frames_per_chunk,
                input_device_index=self.input_device,
            )
            listener.started()
            logger.info("Microphone open, streaming to Google Speech")

            config = speech.RecognitionConfig(
                encoding=speech.RecognitionConfig.AudioEncoding.LINEAR16,
                sample_rate_hertz=self.sample_rate,
                language_code=self.language_code,
                enable_automatic_punctuation=True,
            )
            streaming_config = speech.StreamingRecognitionConfig(
                config=config, interim_results=True
            )
            requests = (
                speech.StreamingRecognizeRequest(audio_content=chunk)
                for chunk in self._chunks(stream, attempt)
            )
            responses = self._get_client().streaming_recognize(streaming_config, requests)

            for response in responses:
                if attempt.aborted.is_set():
                    break
                for result in response.results:
                    if not result.alternatives:
                        continue
                    listener.result(result.alternatives[0].transcript, result.is_final)

        except OSError as e:
            logger.error(f"Microphone error: {e}")
            if is_device_lost(e):
                listener.error(CaptureErrorKind.PERMISSION_REVOKED)
            else:
                listener.error(CaptureErrorKind.AUDIO_CAPTURE)
            return
        except google_exceptions.GoogleAPICallError as e:
            logger.error(f"Speech API error: {e}")
            listener.error(CaptureErrorKind.NETWORK)
            return
        except Exception as e:
            logger.error(f"Speech capture failed: {e}")
            listener.error(CaptureErrorKind.UNKNOWN)
            return
        finally:
            if stream is not None:
                stream.stop_stream()
                stream.close()
            pa.terminate()
            with self._lock:
                if self._attempt is attempt:
                    self._attempt = None

        if attempt.aborted.is_set():
            listener.error(CaptureErrorKind.ABORTED)
        else:
            listener.ended()

    def _chunks(self, stream, attempt: _Attempt) -> Iterator[bytes]:
        """Yield raw PCM16 chunks until the attempt is stopped."""
        while not attempt.stop.is_set():
            yield stream.read(self.frames_per_chunk, exception_on_overflow=False)
