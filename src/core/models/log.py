#!/usr/bin/env python3
"""
Debug/audit log entry model.
"""

import uuid
from dataclasses import dataclass, field
from typing import Dict, Any, Optional

from .article import utc_now_iso

LOG_LEVELS = ('info', 'warn', 'error')


@dataclass(frozen=True)
class DebugLogEntry:
    message: str
    level: str = "info"
    meta: Optional[Dict[str, Any]] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: str = field(default_factory=utc_now_iso)

    def __post_init__(self):
        if self.level not in LOG_LEVELS:
            object.__setattr__(self, 'level', 'info')

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'timestamp': self.timestamp,
            'message': self.message,
            'level': self.level,
            'meta': self.meta,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DebugLogEntry':
        return cls(
            message=data.get('message', ''),
            level=data.get('level', 'info'),
            meta=data.get('meta'),
            id=data.get('id') or str(uuid.uuid4()),
            timestamp=data.get('timestamp') or utc_now_iso(),
        )
