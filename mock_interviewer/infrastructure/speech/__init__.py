"""Speech-to-text, text-to-speech and microphone access."""

from .tts import GoogleTTSPlayback, ConsolePlayback
from .stt import GoogleStreamingCapture
from .permissions import MicrophonePermission

__all__ = ["GoogleTTSPlayback", "ConsolePlayback", "GoogleStreamingCapture", "MicrophonePermission"]
