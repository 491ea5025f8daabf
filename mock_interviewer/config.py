"""
Mock Interviewer Configuration
==============================

This file contains ALL configuration for the mock interview system.
- User settings at the top (things users might want to change)
- Turn-taking policy and internal constants at the bottom
"""
import os
from dataclasses import dataclass, field
from typing import Optional


# =============================================================================
# USER SETTINGS - Edit these to customize the interviewer
# =============================================================================

# REQUIRED: Set your Google Cloud project
GOOGLE_CLOUD_PROJECT = "your-project-id"  # Change this!
GOOGLE_APPLICATION_CREDENTIALS = None  # Optional: path to credentials JSON

# Interview settings
INTERVIEW_TYPE = "technical"
USER_NAME = "Candidate"
WORKDIR = "./_sessions"

# Scoring service (feedback handoff)
FEEDBACK_SERVICE_URL = "http://localhost:8000"

# Speech settings
ENABLE_TTS = True
TTS_VOICE = "en-US-Neural2-F"
TTS_SPEAKING_RATE = 0.9
LANGUAGE_CODE = "en-US"

# Listening mode: listen automatically after the interviewer finishes speaking
AUTO_LISTEN = True

# Logging
LOG_FILE = "./_sessions/interview.log"
LOG_LEVEL = "INFO"


# =============================================================================
# PERSONA SYSTEM
# =============================================================================

@dataclass
class InterviewerPersona:
    """Who the interviewer is and how it talks."""
    role: str = "professional AI interviewer"
    tone: str = "friendly but rigorous"
    max_sentences: int = 2

    # Custom persona instructions
    custom_context: str = ""

    @classmethod
    def from_preset(cls, preset_name: str) -> 'InterviewerPersona':
        """Create persona from preset."""
        presets = {
            "friendly": cls(
                role="supportive AI interviewer", tone="warm and encouraging"
            ),
            "bar_raiser": cls(
                role="senior bar-raiser interviewer", tone="direct and probing",
                custom_context="Push for concrete outcomes and measurable impact."
            ),
            "technical": cls(
                role="senior engineering interviewer", tone="precise and curious",
                custom_context="Prefer follow-ups about trade-offs and design decisions."
            ),
        }
        return presets.get(preset_name, cls())


# Persona preset (set to a preset name to override the defaults above)
PRESET_PERSONA = "default"  # Options: friendly, bar_raiser, technical


# =============================================================================
# TURN-TAKING POLICY - Product-tuned constants
# =============================================================================

# Endpointing: seconds of quiet after the latest recognition event
SILENCE_TIMEOUT_SECONDS = 3.0

# Playback safety timeout: max(MIN, PER_WORD * words + PER_CHAR * chars)
PLAYBACK_MIN_TIMEOUT_SECONDS = 12.0
PLAYBACK_SECONDS_PER_WORD = 0.5
PLAYBACK_SECONDS_PER_CHAR = 0.02

# Global stuck-speaking watchdog
MAX_SPEAKING_SECONDS = 30.0
WATCHDOG_INTERVAL_SECONDS = 1.0

# Generation collaborator
GENERATION_TIMEOUT_SECONDS = 60.0


@dataclass
class TurnTakingPolicy:
    """Tunable timing policy for the turn-taking state machine."""
    silence_timeout: float = SILENCE_TIMEOUT_SECONDS
    playback_min_timeout: float = PLAYBACK_MIN_TIMEOUT_SECONDS
    playback_seconds_per_word: float = PLAYBACK_SECONDS_PER_WORD
    playback_seconds_per_char: float = PLAYBACK_SECONDS_PER_CHAR
    max_speaking_seconds: float = MAX_SPEAKING_SECONDS
    watchdog_interval: float = WATCHDOG_INTERVAL_SECONDS
    generation_timeout: float = GENERATION_TIMEOUT_SECONDS
    auto_listen: bool = AUTO_LISTEN


# =============================================================================
# INTERNAL CONSTANTS - Don't change these unless you know what you're doing
# =============================================================================

# Audio capture
SAMPLE_RATE_CAPTURE = 16000
CAPTURE_CHUNK_MS = 100

# Audio playback
PLAYBACK_CHUNK_FRAMES = 1600

# LLM
VERTEX_LOCATION = "us-central1"
MODEL_NAME = "gemini-2.0-flash-001"
LLM_TIMEOUT = 60
MAX_OUTPUT_TOKENS = 256
LLM_TEMPERATURE = 0.4

# HTTP collaborators
FEEDBACK_TIMEOUT = 30


# =============================================================================
# MAIN CONFIG OBJECT
# =============================================================================

@dataclass
class Config:
    """Main configuration object."""
    google_cloud_project: str
    google_application_credentials: Optional[str] = None
    feedback_service_url: str = FEEDBACK_SERVICE_URL
    workdir: str = WORKDIR
    enable_tts: bool = ENABLE_TTS
    tts_voice: str = TTS_VOICE
    tts_speaking_rate: float = TTS_SPEAKING_RATE
    language_code: str = LANGUAGE_CODE
    vertex_location: str = VERTEX_LOCATION
    model_name: str = MODEL_NAME
    log_file: str = LOG_FILE
    log_level: str = LOG_LEVEL
    policy: TurnTakingPolicy = field(default_factory=TurnTakingPolicy)

    def get_persona(self) -> InterviewerPersona:
        """Get interviewer persona."""
        if PRESET_PERSONA != "default":
            return InterviewerPersona.from_preset(PRESET_PERSONA)
        return InterviewerPersona()


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")


def get_config() -> Config:
    """Load configuration."""
    project = os.getenv("GOOGLE_CLOUD_PROJECT") or GOOGLE_CLOUD_PROJECT
    credentials = os.getenv("GOOGLE_APPLICATION_CREDENTIALS") or GOOGLE_APPLICATION_CREDENTIALS

    if project == "your-project-id":
        raise ValueError("Please set GOOGLE_CLOUD_PROJECT in config.py or as environment variable")

    policy = TurnTakingPolicy(
        silence_timeout=_env_float("INTERVIEW_SILENCE_TIMEOUT", SILENCE_TIMEOUT_SECONDS),
        max_speaking_seconds=_env_float("INTERVIEW_MAX_SPEAKING_SECONDS", MAX_SPEAKING_SECONDS),
        generation_timeout=_env_float("INTERVIEW_GENERATION_TIMEOUT", GENERATION_TIMEOUT_SECONDS),
    )

    return Config(
        google_cloud_project=project,
        google_application_credentials=credentials,
        feedback_service_url=os.getenv("FEEDBACK_SERVICE_URL") or FEEDBACK_SERVICE_URL,
        workdir=os.getenv("INTERVIEW_WORKDIR") or WORKDIR,
        policy=policy,
    )
