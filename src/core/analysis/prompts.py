#!/usr/bin/env python3
"""
Prompt templates for article enrichment.

Each builder returns the user message for one step; ``SYSTEM_PROMPT`` is
shared. Article text is fenced in triple quotes so instructions inside the
article cannot be mistaken for ours.
"""

from typing import List


class EnrichmentPrompts:
    """Collection of prompts for article enrichment."""

    SYSTEM_PROMPT = (
        "You are a careful news analyst. You read one article at a time and answer "
        "only with JSON that matches the requested schema. Never invent facts that are "
        "not in the text. When the text gives no basis for an answer, use the neutral value."
    )

    @staticmethod
    def _fence(text: str) -> str:
        return f'"""{text}"""'

    @classmethod
    def summary(cls, text: str) -> str:
        return (
            "Summarize the article below in at most three sentences. Keep a neutral tone.\n\n"
            f"Article:\n{cls._fence(text)}"
        )

    @classmethod
    def tags(cls, text: str) -> str:
        return (
            "List the important topics, named entities (people, places, organizations) "
            "and keywords of the article below. Keep each tag short.\n\n"
            f"Article:\n{cls._fence(text)}"
        )

    @classmethod
    def translate(cls, texts: List[str], target_language: str) -> str:
        numbered = "\n".join(f"{i + 1}. {t}" for i, t in enumerate(texts))
        return (
            f"Translate each numbered text into the language with code '{target_language}'. "
            "Return the translations in the same order and the same count. "
            "Texts already in that language are returned unchanged.\n\n"
            f"{numbered}"
        )

    @classmethod
    def political_bias(cls, text: str) -> str:
        return (
            "Classify the political leaning of the article below as one of: "
            "left, lean-left, center, lean-right, right, unknown.\n\n"
            f"Article:\n{cls._fence(text)}"
        )

    @classmethod
    def sentiment(cls, text: str) -> str:
        return (
            "Classify the overall sentiment of the article below as positive, negative or neutral, "
            "with a confidence between 0 and 1 and a one-sentence explanation.\n\n"
            f"Article:\n{cls._fence(text)}"
        )

    @classmethod
    def cognitive_bias(cls, text: str) -> str:
        return (
            "Find cognitive biases or framing effects in the article below. For each one give "
            "its name, the exact snippet showing it, a short explanation, a severity "
            "(low, medium or high) and a category such as Framing or Emotional Appeal. "
            "Return an empty list when there are none.\n\n"
            f"Article:\n{cls._fence(text)}"
        )

    @classmethod
    def antithesis(cls, text: str) -> str:
        return (
            "State the strongest reasonable counter-argument to the main claim of the article "
            "below in two or three sentences.\n\n"
            f"Article:\n{cls._fence(text)}"
        )

    @classmethod
    def philosophical(cls, text: str) -> str:
        return (
            "Read the article below through a philosophical lens: give a short interpretation, "
            "its core themes, the implicit worldview, any ethical questions it raises and the "
            "philosophical traditions it relates to.\n\n"
            f"Article:\n{cls._fence(text)}"
        )


SYSTEM_PROMPT = EnrichmentPrompts.SYSTEM_PROMPT
