#!/usr/bin/env python3
"""
Article data models.

Two concrete stored types share the same base fields: ``Article`` for
ingested, not yet analyzed items, and ``ArticleAnalyzed`` for items that
went through enrichment. The ``analyzed`` class attribute is the
discriminant persisted with every record; ``article_from_dict`` uses it to
pick the right type when reading back from a store, a blob or a peer.
"""

from datetime import datetime, timezone
from dataclasses import dataclass, field, fields
from typing import Dict, Any, Optional, List, ClassVar, Union

from dateutil import parser as date_parser


EDITIONS = (
    "international", "us", "uk", "ca", "au", "eu", "de", "fr", "es", "it",
    "jp", "kr", "cn", "in", "br", "ru", "mx", "sa", "ae", "ng", "za", "other",
)

POLITICAL_BIAS_VALUES = ("left", "lean-left", "center", "right", "lean-right", "unknown")

SOURCE_TYPES = (
    "gdelt", "rss", "html", "api", "json", "custom", "newswire", "google_news",
    "bing_news", "gcm", "social", "twitter", "reddit", "youtube", "newsletter",
    "email", "blog", "pdf", "doc", "transcript", "podcast", "academic", "gov",
    "foia", "ngo", "openweb", "crawler", "hn",
)

# camelCase keys written by JavaScript peers
_CAMEL_ALIASES = {
    'published_at': 'publishedAt',
    'source_domain': 'sourceDomain',
    'source_type': 'sourceType',
    'source_meta': 'sourceMeta',
    'source_country': 'sourceCountry',
    'mobile_url': 'mobileUrl',
    'ipfs_hash': 'ipfsHash',
    'fetched_at': 'fetchedAt',
    'original_id': 'originalId',
    'political_bias': 'politicalBias',
    'cognitive_biases': 'cognitiveBiases',
    'analysis_timestamp': 'analysisTimestamp',
}


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


def to_iso_datetime(value: Any) -> Optional[str]:
    """Best-effort conversion of a date-ish value to an ISO-8601 string."""
    if isinstance(value, datetime):
        return value.isoformat()
    if not value:
        return None
    try:
        return date_parser.parse(str(value)).isoformat()
    except (ValueError, OverflowError):
        return None


def _pick(data: Dict[str, Any], key: str, default: Any = None) -> Any:
    if key in data and data[key] is not None:
        return data[key]
    alias = _CAMEL_ALIASES.get(key)
    if alias and data.get(alias) is not None:
        return data[alias]
    return default


@dataclass(frozen=True)
class SourceMeta:
    """Source name with its political leaning."""
    name: str
    bias: str = "center"
    confidence: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {'name': self.name, 'bias': self.bias}
        if self.confidence is not None:
            result['confidence'] = self.confidence
        return result

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional['SourceMeta']:
        if not data:
            return None
        bias = data.get('bias') or "center"
        return cls(
            name=data.get('name') or "",
            bias=bias if bias in POLITICAL_BIAS_VALUES else "unknown",
            confidence=data.get('confidence'),
        )


@dataclass(frozen=True)
class CognitiveBias:
    """One cognitive bias detected in an article's text."""
    bias: str
    snippet: str = ""
    explanation: str = ""
    severity: str = "low"
    category: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            'bias': self.bias,
            'snippet': self.snippet,
            'explanation': self.explanation,
            'severity': self.severity,
            'category': self.category,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CognitiveBias':
        severity = data.get('severity', 'low')
        return cls(
            bias=str(data.get('bias', '')),
            snippet=str(data.get('snippet', '') or ''),
            explanation=str(data.get('explanation', '') or ''),
            severity=severity if severity in ('low', 'medium', 'high') else 'low',
            category=str(data.get('category', '') or ''),
        )


@dataclass
class Article:
    """
    An ingested news article that has not been analyzed.

    ``url`` is the primary key of the Local store. ``raw`` keeps whatever
    the source returned (feed item dict or fetched HTML) for audit.
    """
    analyzed: ClassVar[bool] = False

    id: str = ""
    url: str = ""
    title: str = ""
    content: Optional[str] = None
    summary: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    categories: List[str] = field(default_factory=list)
    language: Optional[str] = None
    author: Optional[str] = None
    published_at: Optional[str] = None
    edition: str = "other"
    source: Optional[str] = None
    source_domain: Optional[str] = None
    source_type: Optional[str] = None
    source_country: Optional[str] = None
    source_meta: Optional[SourceMeta] = None
    confidence: float = 0.8
    image: Optional[str] = None
    mobile_url: Optional[str] = None
    ipfs_hash: Optional[str] = None
    raw: Any = None
    fetched_at: Optional[str] = None

    def __post_init__(self):
        """Clean and validate data after initialization."""
        if self.url is None or isinstance(self.url, str):
            self.url = (self.url or "").strip()
        if self.title is None or isinstance(self.title, str):
            self.title = (self.title or "").strip()
        self.tags = list(self.tags or [])
        self.categories = list(self.categories or [])
        if self.edition not in EDITIONS:
            self.edition = "other"
        if isinstance(self.source_meta, dict):
            self.source_meta = SourceMeta.from_dict(self.source_meta)

        if self.confidence is None:
            self.confidence = 0.8
        # Non-numeric confidence is left for the validator to reject
        if isinstance(self.confidence, (int, float)) and not isinstance(self.confidence, bool):
            self.confidence = max(0.0, min(1.0, float(self.confidence)))

    def is_resolved(self) -> bool:
        """True when content, summary and analysis are all present."""
        return bool(self.content and self.summary and self.analyzed)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-ready dictionary with snake_case keys."""
        result: Dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, SourceMeta):
                value = value.to_dict()
            elif f.name == 'cognitive_biases':
                value = [b.to_dict() for b in value]
            elif isinstance(value, list):
                value = list(value)
            result[f.name] = value
        result['analyzed'] = self.analyzed
        return result

    @classmethod
    def _field_values(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        return {
            'id': str(_pick(data, 'id', '') or ''),
            'url': _pick(data, 'url', '') or '',
            'title': _pick(data, 'title', '') or '',
            'content': _pick(data, 'content'),
            'summary': _pick(data, 'summary'),
            'tags': _pick(data, 'tags', []) or [],
            'categories': _pick(data, 'categories', []) or [],
            'language': _pick(data, 'language'),
            'author': _pick(data, 'author'),
            'published_at': to_iso_datetime(_pick(data, 'published_at')),
            'edition': _pick(data, 'edition', 'other'),
            'source': _pick(data, 'source'),
            'source_domain': _pick(data, 'source_domain'),
            'source_type': _pick(data, 'source_type'),
            'source_country': _pick(data, 'source_country'),
            'source_meta': SourceMeta.from_dict(_pick(data, 'source_meta')),
            'confidence': _pick(data, 'confidence', 0.8),
            'image': _pick(data, 'image'),
            'mobile_url': _pick(data, 'mobile_url'),
            'ipfs_hash': _pick(data, 'ipfs_hash'),
            'raw': _pick(data, 'raw'),
            'fetched_at': _pick(data, 'fetched_at'),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Article':
        """Create an Article from a snake_case or camelCase dictionary."""
        return cls(**cls._field_values(data))

    def __repr__(self):
        return f"{self.__class__.__name__}(id='{self.id}', url='{self.url}', title='{self.title[:50]}')"


@dataclass(repr=False)
class ArticleAnalyzed(Article):
    """
    An article after enrichment.

    Has its own generated ``id``; ``original_id`` points back to the
    Article it was derived from.
    """
    analyzed: ClassVar[bool] = True

    original_id: Optional[str] = None
    political_bias: Optional[str] = None
    sentiment: Optional[str] = None
    cognitive_biases: List[CognitiveBias] = field(default_factory=list)
    antithesis: Optional[str] = None
    philosophical: Optional[str] = None
    analysis_timestamp: Optional[str] = None

    def __post_init__(self):
        super().__post_init__()
        self.cognitive_biases = [
            b if isinstance(b, CognitiveBias) else CognitiveBias.from_dict(b)
            for b in (self.cognitive_biases or [])
            if isinstance(b, (CognitiveBias, dict))
        ]

    @classmethod
    def _field_values(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        values = super()._field_values(data)
        values.update({
            'original_id': _pick(data, 'original_id'),
            'political_bias': _pick(data, 'political_bias'),
            'sentiment': _pick(data, 'sentiment'),
            'cognitive_biases': _pick(data, 'cognitive_biases', []) or [],
            'antithesis': _pick(data, 'antithesis'),
            'philosophical': _pick(data, 'philosophical'),
            'analysis_timestamp': _pick(data, 'analysis_timestamp'),
        })
        return values


StoredArticle = Union[Article, ArticleAnalyzed]


def article_from_dict(data: Dict[str, Any]) -> StoredArticle:
    """Build the concrete article type selected by the ``analyzed`` flag."""
    if data.get('analyzed') is True:
        return ArticleAnalyzed.from_dict(data)
    return Article.from_dict(data)
