"""
Response generation coordinator.

Turns the transcript into a request for the generation collaborator and
always resolves to a usable interviewer line: generation failures are
absorbed into a deterministic fallback so the conversation never stalls.
"""
import logging
from dataclasses import dataclass, replace
from typing import Optional

from . import playback
from .messages import Step, GenerationCompleted
from .models import InterviewSetup, Speaker, Transcript, render_transcript
from .prompts import InterviewPrompts, PromptFormatter
from .schemas import CallState, Context, GenerationRequest
from .services import TextGenerator
from ..config import InterviewerPersona

logger = logging.getLogger("coordinator")


@dataclass(frozen=True)
class GeneratedUtterance:
    """The next interviewer line and whether it came from the fallback."""
    text: str
    is_fallback: bool = False


class ResponseCoordinator:
    """Handles building generation requests and resolving their results."""

    def __init__(self,
                 generator: TextGenerator,
                 setup: InterviewSetup,
                 persona: Optional[InterviewerPersona] = None):
        self.generator = generator
        self.setup = setup
        self.persona = persona or InterviewerPersona()

    def build_request(self, transcript: Transcript) -> GenerationRequest:
        """
        Build the generation request for the next interviewer line.

        Args:
            transcript: Every turn so far, ending with the user's latest turn

        Returns:
            GenerationRequest with the full prompt and the rendered history
        """
        history = render_transcript(transcript)
        prompt = InterviewPrompts.next_utterance_prompt(
            persona_context=PromptFormatter.format_persona(self.persona),
            interview_type=self.setup.interview_type,
            user_name=self.setup.user_name,
            questions=self.setup.questions,
            history=history,
        )
        return GenerationRequest(prompt=prompt, context=history)

    def request_next_utterance(self, transcript: Transcript) -> GeneratedUtterance:
        """
        Ask the generator for the next line, falling back on any failure.

        Blocks for the duration of the collaborator call; run it off the
        event loop.
        """
        request = self.build_request(transcript)
        logger.debug(f"Requesting next utterance ({len(transcript)} turns)")

        try:
            response = self.generator.generate(request)
        except Exception as e:
            logger.error("Generation failed: %s", e)
            return self.fallback_utterance()

        text = (response.text or "").strip()
        if not text:
            logger.warning("Generator returned empty text, using fallback")
            return self.fallback_utterance()

        logger.info(f"Generated utterance: {text}")
        return GeneratedUtterance(text=text)

    def fallback_utterance(self) -> GeneratedUtterance:
        """Deterministic line built from the first candidate question."""
        messages = InterviewPrompts.fallback_messages()
        question = self.setup.questions[0] if self.setup.questions else messages["generic_question"]
        return GeneratedUtterance(text=messages["continue_prefix"] + question, is_fallback=True)


def on_generation_completed(state: CallState, msg: GenerationCompleted, ctx: Context) -> Step:
    """Append the interviewer turn and queue it for playback."""
    if not state.generating:
        logger.debug("Dropping generation result with no request in flight")
        return state, []

    if msg.is_fallback:
        logger.warning(f"Using fallback utterance: {msg.text}")
    state = replace(state, generating=False).with_turn(Speaker.INTERVIEWER, msg.text)
    return playback.enqueue(state, msg.text, ctx)
