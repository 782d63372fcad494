#!/usr/bin/env python3
"""
OpenAI integration for article enrichment.

Provides the model-backed steps of the enrichment chain:
- Summaries and tags
- Translation of titles and fields
- Political bias, sentiment and cognitive bias classification
- Antithesis and philosophical framing
"""

import os
import logging
from typing import List, Dict, Optional, Any

from openai import AsyncOpenAI

from core.analysis.json_output import parse_llm_json
from core.analysis.prompts import EnrichmentPrompts
from core.analysis.schemas import get_schema_by_type
from core.exceptions import AnalysisError, LLMError

logger = logging.getLogger(__name__)


class OpenAIClient:
    """Async client for the OpenAI API with structured outputs."""

    def __init__(self, api_key: Optional[str] = None, model: str = "gpt-4o-mini", timeout: float = 60.0):
        """
        Initialize OpenAI client.

        Args:
            api_key: OpenAI API key. If None, tries to get from environment.
            model: Chat model used for every step
            timeout: Per-request timeout in seconds
        """
        api_key = api_key or os.getenv('OPENAI_API_KEY')
        if not api_key:
            raise ValueError("OpenAI API key not provided and not found in OPENAI_API_KEY environment variable")

        self.client = AsyncOpenAI(api_key=api_key, timeout=timeout)
        self.model = model
        self.max_tokens = 1200
        self.temperature = 0.3  # Lower temperature for more consistent analysis

    async def _make_structured_request(self, prompt: str, analysis_type: str) -> Dict[str, Any]:
        """Make a structured request to OpenAI API with JSON schema enforcement."""
        messages = [
            {"role": "system", "content": EnrichmentPrompts.SYSTEM_PROMPT},
            {"role": "user", "content": prompt}
        ]
        schema = get_schema_by_type(analysis_type)

        logger.info(f"Making OpenAI structured API call for {analysis_type}")
        logger.debug(f"=== LLM INPUT PROMPT ===\n{prompt[:500]}\n=== END LLM INPUT ===")

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                response_format={
                    "type": "json_schema",
                    "json_schema": {
                        "name": f"{analysis_type}_response",
                        "schema": schema,
                        "strict": True
                    }
                }
            )
        except Exception as e:
            logger.error(f"OpenAI structured API request failed: {e}")
            raise LLMError("openai", self.model, e)

        choice = response.choices[0]
        # Detect truncated responses early
        if getattr(choice, "finish_reason", None) == "length":
            logger.error(
                "OpenAI response for %s was truncated due to max_tokens=%s.",
                analysis_type,
                self.max_tokens,
            )
            raise LLMError("openai", self.model, ValueError("response truncated (finish_reason=length)"))

        usage = response.usage
        if usage is not None:
            logger.info(
                f"OpenAI API call successful - tokens: {usage.prompt_tokens} prompt + "
                f"{usage.completion_tokens} completion = {usage.total_tokens} total"
            )

        content = choice.message.content or ""
        logger.debug(f"=== LLM OUTPUT RESPONSE ===\n{content}\n=== END LLM OUTPUT ===")
        return parse_llm_json(content, analysis_type)

    async def summarize(self, text: str) -> str:
        result = await self._make_structured_request(EnrichmentPrompts.summary(text), "summary")
        return str(result.get("summary", "")).strip()

    async def extract_tags(self, text: str) -> List[str]:
        result = await self._make_structured_request(EnrichmentPrompts.tags(text), "tags")
        return [str(t) for t in result.get("tags", [])]

    async def translate(self, texts: List[str], target_language: str) -> List[str]:
        """
        Translate a batch of texts.

        Raises:
            AnalysisError: If the model returns a different number of texts
        """
        if not texts:
            return []
        result = await self._make_structured_request(
            EnrichmentPrompts.translate(texts, target_language), "translation"
        )
        translations = [str(t) for t in result.get("translations", [])]
        if len(translations) != len(texts):
            raise AnalysisError(
                f"Translation returned {len(translations)} texts for {len(texts)} inputs",
                context={'target_language': target_language}
            )
        return translations

    async def political_bias(self, text: str) -> str:
        result = await self._make_structured_request(EnrichmentPrompts.political_bias(text), "political_bias")
        return str(result.get("bias", "unknown"))

    async def sentiment(self, text: str) -> str:
        result = await self._make_structured_request(EnrichmentPrompts.sentiment(text), "sentiment")
        return str(result.get("sentiment", "neutral"))

    async def cognitive_biases(self, text: str) -> List[Dict[str, Any]]:
        result = await self._make_structured_request(EnrichmentPrompts.cognitive_bias(text), "cognitive_bias")
        return [b for b in result.get("biases", []) if isinstance(b, dict)]

    async def antithesis(self, text: str) -> str:
        result = await self._make_structured_request(EnrichmentPrompts.antithesis(text), "antithesis")
        return str(result.get("antithesis", ""))

    async def philosophical(self, text: str) -> str:
        result = await self._make_structured_request(EnrichmentPrompts.philosophical(text), "philosophical")
        return str(result.get("philosophical", ""))

