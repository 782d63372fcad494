#!/usr/bin/env python3
"""
Federated article pointer.

Announces that content exists at a content identifier. Pointers are
appended and queried, never changed.
"""

from dataclasses import dataclass, field
from typing import Dict, Any, Optional

from .article import utc_now_iso


@dataclass(frozen=True)
class FederatedArticlePointer:
    cid: str
    analyzed: bool = False
    timestamp: str = field(default_factory=utc_now_iso)
    source: Optional[str] = None
    edition: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'cid': self.cid,
            'timestamp': self.timestamp,
            'analyzed': self.analyzed,
            'source': self.source,
            'edition': self.edition,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FederatedArticlePointer':
        return cls(
            cid=data['cid'],
            analyzed=bool(data.get('analyzed', False)),
            timestamp=data.get('timestamp') or utc_now_iso(),
            source=data.get('source'),
            edition=data.get('edition'),
        )
