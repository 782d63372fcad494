#!/usr/bin/env python3
"""
Enrichment result data models.

Shapes returned by the enrichment adapter. Both carry neutral defaults
so an empty input can always be answered without calling a model.
"""

from typing import List, Dict, Any, Optional
from dataclasses import dataclass, field

from .article import CognitiveBias, utc_now_iso


@dataclass
class NormalizedContent:
    """Cleaned (optionally translated) text with its summary and tags."""
    content: str = ""
    summary: str = ""
    tags: List[str] = field(default_factory=list)

    def __post_init__(self):
        self.content = (self.content or "").strip()
        self.summary = (self.summary or "").strip()
        self.tags = [str(t).strip() for t in (self.tags or []) if str(t).strip()]


@dataclass
class AnalysisResult:
    """Political bias, sentiment, cognitive biases and framing of a text."""
    political_bias: str = "unknown"
    sentiment: str = "neutral"
    cognitive_biases: List[CognitiveBias] = field(default_factory=list)
    antithesis: str = ""
    philosophical: str = ""
    analysis_timestamp: Optional[str] = None

    def __post_init__(self):
        """Validate and clean data."""
        if self.sentiment not in ('positive', 'negative', 'neutral'):
            self.sentiment = 'neutral'
        self.cognitive_biases = [
            b if isinstance(b, CognitiveBias) else CognitiveBias.from_dict(b)
            for b in (self.cognitive_biases or [])
        ]
        if self.analysis_timestamp is None:
            self.analysis_timestamp = utc_now_iso()

    @classmethod
    def neutral(cls) -> 'AnalysisResult':
        """Defaults returned for empty input."""
        return cls()

    def to_fields(self) -> Dict[str, Any]:
        """Field values to merge into an ArticleAnalyzed."""
        return {
            'political_bias': self.political_bias,
            'sentiment': self.sentiment,
            'cognitive_biases': list(self.cognitive_biases),
            'antithesis': self.antithesis,
            'philosophical': self.philosophical,
            'analysis_timestamp': self.analysis_timestamp,
        }
