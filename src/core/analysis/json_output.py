#!/usr/bin/env python3
"""
Parsing of JSON returned by language models.

Structured outputs are usually clean, but models behind compatible APIs
still wrap JSON in markdown fences or leave trailing commas.
"""

import json
import logging
import re
from typing import Any, Dict

from core.exceptions import AnalysisError

logger = logging.getLogger(__name__)

_TRAILING_COMMA = re.compile(r',\s*([}\]])')


def _extract_json(raw_output: str) -> str:
    """Extract the outermost JSON object from mixed text output."""
    text = raw_output.replace('```json', '').replace('```', '').strip()
    start = text.find('{')
    end = text.rfind('}')
    if start != -1 and end > start:
        return text[start:end + 1]
    return text


def parse_llm_json(raw_output: str, analysis_type: str = "unknown") -> Dict[str, Any]:
    """
    Parse a model response into a dict.

    Raises:
        AnalysisError: If no JSON object can be recovered
    """
    if not raw_output or not raw_output.strip():
        raise AnalysisError(f"Empty model output for {analysis_type}")

    try:
        data = json.loads(raw_output)
    except json.JSONDecodeError:
        candidate = _extract_json(raw_output)
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            logger.warning(f"Repairing JSON output for {analysis_type}")
            try:
                data = json.loads(_TRAILING_COMMA.sub(r'\1', candidate))
            except json.JSONDecodeError as e:
                logger.error(f"JSON parsing failed for {analysis_type}: {e}; first 300 chars: {raw_output[:300]!r}")
                raise AnalysisError(f"Unparsable model output for {analysis_type}: {e}")

    if not isinstance(data, dict):
        raise AnalysisError(f"Expected a JSON object for {analysis_type}, got {type(data).__name__}")
    return data
