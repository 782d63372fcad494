#!/usr/bin/env python3
"""
News source configuration model.

Sources are owned by configuration and read-only to the pipeline.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Any, Optional, List

from core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Source:
    """A configured endpoint plus the parser/normalizer pair that reads it."""
    name: str
    endpoint: str
    parser: str = "json"
    normalizer: str = "json"
    enabled: bool = True
    requires_api_key: bool = False
    bias: str = "center"
    language: Optional[str] = None
    edition: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'endpoint': self.endpoint,
            'parser': self.parser,
            'normalizer': self.normalizer,
            'enabled': self.enabled,
            'requires_api_key': self.requires_api_key,
            'bias': self.bias,
            'language': self.language,
            'edition': self.edition,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Source':
        endpoint = data.get('endpoint') or data.get('url') or ''
        return cls(
            name=data.get('name') or endpoint,
            endpoint=endpoint,
            parser=data.get('parser') or 'json',
            normalizer=data.get('normalizer') or 'json',
            enabled=bool(data.get('enabled', True)),
            requires_api_key=bool(data.get('requires_api_key', data.get('requiresApiKey', False))),
            bias=data.get('bias') or 'center',
            language=data.get('language'),
            edition=data.get('edition'),
        )


def load_sources(path: Path) -> List[Source]:
    """
    Load source definitions from a JSON file.

    The file holds either a list of source objects or ``{"sources": [...]}``.

    Raises:
        ConfigurationError: If the file is missing or malformed
    """
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(str(path), "sources file does not exist")

    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(str(path), f"cannot read sources file: {e}")

    entries = data.get('sources', []) if isinstance(data, dict) else data
    if not isinstance(entries, list):
        raise ConfigurationError(str(path), "expected a list of sources")

    sources = [Source.from_dict(entry) for entry in entries if isinstance(entry, dict)]
    logger.info(f"Loaded {len(sources)} sources from {path}")
    return sources
