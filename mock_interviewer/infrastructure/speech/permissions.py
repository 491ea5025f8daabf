"""
Microphone permission check.
"""
import logging
from typing import Optional

from ...config import SAMPLE_RATE_CAPTURE
from ...interview.services import PermissionAcquirer, PermissionOutcome

logger = logging.getLogger("permissions")


class MicrophonePermission(PermissionAcquirer):
    """Opens and immediately closes an input stream to probe access."""

    def __init__(self, input_device: Optional[int] = None, sample_rate: int = SAMPLE_RATE_CAPTURE):
        self.input_device = input_device
        self.sample_rate = sample_rate

    def acquire(self) -> PermissionOutcome:
        try:
            import pyaudio
        except ImportError:
            logger.error("PyAudio is not installed")
            return PermissionOutcome.UNSUPPORTED

        pa = pyaudio.PyAudio()
        try:
            stream = pa.open(
                format=pyaudio.paInt16,
                channels=1,
                rate=self.sample_rate,
                input=True,
                input_device_index=self.input_device,
            )
            stream.close()
            logger.info("Microphone access granted")
            return PermissionOutcome.GRANTED
        except OSError as e:
            logger.error(f"Microphone access failed: {e}")
            return PermissionOutcome.DENIED
        finally:
            pa.terminate()
