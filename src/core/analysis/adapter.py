#!/usr/bin/env python3
"""
Enrichment adapter.

The boundary between the pipeline and whatever model service produces
summaries, tags, translations and analysis. Every method tolerates empty
input with neutral defaults and bounds the text it forwards. Individual
model steps degrade to cheap deterministic results; ``analyze`` raises
only when no analysis at all could be produced.
"""

import logging
from typing import Any, List, Optional

from core.exceptions import AnalysisError, AnalysisUnavailableError
from core.models import AnalysisResult, NormalizedContent, POLITICAL_BIAS_VALUES
from .text import clean_html, naive_summary, truncate_text

logger = logging.getLogger(__name__)

DEFAULT_MAX_CHARS = 6000


class EnrichmentAdapter:
    """
    Enrichment backed by an optional model client.

    The client is anything with the async methods of
    ``integrations.openai_client.OpenAIClient``. Without a client,
    ``normalize`` uses the text fallbacks and ``analyze``/``translate_*``
    raise ``AnalysisUnavailableError`` for non-empty input.
    """

    def __init__(self, client: Optional[Any] = None, max_chars: int = DEFAULT_MAX_CHARS):
        self.client = client
        self.max_chars = max_chars

    @property
    def has_backend(self) -> bool:
        return self.client is not None

    async def normalize(self, raw_text: str, target_lang: Optional[str] = None) -> NormalizedContent:
        """
        Clean markup, optionally translate, then summarize and tag.

        Args:
            raw_text: HTML or plain text
            target_lang: Language code to translate into, or None to keep the original

        Returns:
            NormalizedContent; empty input gives empty content, summary and tags
        """
        content = clean_html(raw_text)
        if not content:
            return NormalizedContent()

        if self.client is None:
            return NormalizedContent(content=content, summary=naive_summary(content), tags=[])

        if target_lang:
            try:
                translated = await self.client.translate([truncate_text(content, self.max_chars)], target_lang)
                if translated and translated[0].strip():
                    content = translated[0]
            except Exception as e:
                logger.warning(f"Translation to {target_lang} failed, keeping original text: {e}")

        bounded = truncate_text(content, self.max_chars)

        try:
            summary = await self.client.summarize(bounded)
        except Exception as e:
            logger.warning(f"Summarization failed, using first sentences: {e}")
            summary = ""
        if not summary:
            summary = naive_summary(content)

        try:
            tags = await self.client.extract_tags(bounded)
        except Exception as e:
            logger.warning(f"Tag extraction failed: {e}")
            tags = []

        return NormalizedContent(content=content, summary=summary, tags=tags)

    async def analyze(self, text: str) -> AnalysisResult:
        """
        Political bias, sentiment, cognitive biases, antithesis and philosophical framing.

        Steps that fail keep their neutral value.

        Raises:
            AnalysisUnavailableError: If no client is configured
            AnalysisError: If every step failed
        """
        if not text or not text.strip():
            return AnalysisResult.neutral()
        if self.client is None:
            raise AnalysisUnavailableError('analyze')

        bounded = truncate_text(text, self.max_chars)
        result = AnalysisResult.neutral()
        failures: List[str] = []

        steps = (
            ('political_bias', self.client.political_bias),
            ('sentiment', self.client.sentiment),
            ('cognitive_biases', self.client.cognitive_biases),
            ('antithesis', self.client.antithesis),
            ('philosophical', self.client.philosophical),
        )
        values = {}
        for name, step in steps:
            try:
                values[name] = await step(bounded)
            except Exception as e:
                logger.warning(f"Analysis step {name} failed: {e}")
                failures.append(name)

        if len(failures) == len(steps):
            raise AnalysisError("All analysis steps failed", context={'failed_steps': failures})

        bias = values.get('political_bias', result.political_bias)
        return AnalysisResult(
            political_bias=bias if bias in POLITICAL_BIAS_VALUES else 'unknown',
            sentiment=values.get('sentiment', result.sentiment),
            cognitive_biases=values.get('cognitive_biases', []),
            antithesis=values.get('antithesis', ''),
            philosophical=values.get('philosophical', ''),
        )

    async def translate_texts(self, texts: List[str], target_lang: str) -> List[str]:
        """
        Translate texts in one batch, preserving order.

        Raises:
            AnalysisUnavailableError: If no client is configured
            AnalysisError: If the backend fails or returns a different count
        """
        if not texts:
            return []
        if self.client is None:
            raise AnalysisUnavailableError('translate')

        bounded = [truncate_text(t or "", self.max_chars) for t in texts]
        try:
            translated = await self.client.translate(bounded, target_lang)
        except AnalysisError:
            raise
        except Exception as e:
            raise AnalysisError(f"Translation failed: {e}", context={'target_language': target_lang})
        if len(translated) != len(texts):
            raise AnalysisError("Translation count mismatch", context={'target_language': target_lang})
        return translated

    async def translate_titles(self, titles: List[str], target_lang: str) -> List[str]:
        return await self.translate_texts(titles, target_lang)
