"""
Interview prompt templates and generation.

This module contains all the prompt templates and fixed lines used by the
interviewer, keeping them separate from the turn-taking logic for easier
maintenance and editing.
"""

from typing import Dict, List


class InterviewPrompts:
    """Collection of all interviewer prompts and fixed lines."""

    @staticmethod
    def opening_line(user_name: str, interview_type: str) -> str:
        """The fixed first line of every session."""
        return (
            f"Hello {user_name}! Welcome to your mock interview for {interview_type}. "
            "Ready? Start speaking after I finish."
        )

    @staticmethod
    def next_utterance_prompt(
        persona_context: str,
        interview_type: str,
        user_name: str,
        questions: List[str],
        history: str
    ) -> str:
        """Main prompt asking for the interviewer's next line."""
        tech_stack = ", ".join(questions) if questions else "General"
        question_list = "\n".join(f"- {q}" for q in questions) if questions else "N/A"

        return f"""
{persona_context}

You are conducting a {interview_type} interview.
User: {user_name}, Tech Stack: {tech_stack}.
Questions:
{question_list}

History:
{history}

Respond as interviewer: confirm details if needed, then ask a relevant question from the list or a follow-up based on previous responses.
Concise, 1-2 sentences, end with a question. Plain text only.
        """.strip()

    @staticmethod
    def persona_context_template() -> str:
        """Base template for persona context generation."""
        return """
You are a {role} running a spoken mock interview.
Your tone is {tone}. Keep every reply to at most {max_sentences} sentences;
it will be read aloud, so avoid lists, markdown and code.
        """.strip()

    @staticmethod
    def fallback_messages() -> Dict[str, str]:
        """Fixed lines used when generation fails."""
        return {
            "continue_prefix": "Thanks for sharing. Let's continue: ",
            "generic_question": "Tell me about your skills.",
        }


class PromptFormatter:
    """Helper class for formatting and customizing prompts."""

    @staticmethod
    def format_persona(persona) -> str:
        """Render a persona into the base persona template."""
        base = InterviewPrompts.persona_context_template().format(
            role=persona.role,
            tone=persona.tone,
            max_sentences=persona.max_sentences,
        )
        return PromptFormatter.add_custom_context(base, persona.custom_context)

    @staticmethod
    def add_custom_context(base_prompt: str, custom_context: str) -> str:
        """Add custom context to a base prompt if provided."""
        if custom_context and custom_context.strip():
            return f"{base_prompt}\n\nADDITIONAL CONTEXT: {custom_context}"
        return base_prompt
