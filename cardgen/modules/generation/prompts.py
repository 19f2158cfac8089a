"""Prompts and provider overrides for flashcard generation."""

from __future__ import annotations

from cardgen.modules.flashcards.models import BACK_MAX_LENGTH, FRONT_MAX_LENGTH
from cardgen.modules.provider.models import ChatOverrides

SYSTEM_PROMPT = (
    "You are an expert educational content creator who turns study material "
    "into high-quality flashcards. "
    "Return a single JSON object of the form {\"flashcards\": [{\"front\", \"back\"}]}. "
    "Rules: "
    f"- front: one clear, atomic question or term, at most {FRONT_MAX_LENGTH} characters. "
    f"- back: a concise, accurate answer, at most {BACK_MAX_LENGTH} characters. "
    "- Cover the key concepts of the text; prefer understanding over trivia. "
    "- Plain text only: no markdown, no code fences, no extra keys or commentary."
)


def build_user_prompt(input_text: str) -> str:
    return (
        "Create flashcards from the study material below. "
        "Follow the system rules and output only the JSON object.\n\n"
        f"Study material:\n{input_text}"
    )


FLASHCARDS_RESPONSE_FORMAT = {
    "type": "json_schema",
    "json_schema": {
        "name": "flashcards_response",
        "strict": True,
        "schema": {
            "type": "object",
            "properties": {
                "flashcards": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "front": {"type": "string", "maxLength": FRONT_MAX_LENGTH},
                            "back": {"type": "string", "maxLength": BACK_MAX_LENGTH},
                        },
                        "required": ["front", "back"],
                        "additionalProperties": False,
                    },
                },
            },
            "required": ["flashcards"],
            "additionalProperties": False,
        },
    },
}

GENERATION_OVERRIDES = ChatOverrides(
    model_params={"temperature": 0.7, "max_tokens": 2000},
    response_format=FLASHCARDS_RESPONSE_FORMAT,
)
