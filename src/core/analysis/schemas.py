#!/usr/bin/env python3
"""
Centralized JSON schemas for OpenAI structured outputs.

Every enrichment step asks for an object; list results are wrapped in a
named property because strict structured output requires an object root.
"""

from typing import Dict, Any

SUMMARY_SCHEMA = {
    "type": "object",
    "properties": {
        "summary": {
            "type": "string",
            "description": "Neutral summary of the article in at most three sentences"
        }
    },
    "required": ["summary"],
    "additionalProperties": False
}

TAGS_SCHEMA = {
    "type": "object",
    "properties": {
        "tags": {
            "type": "array",
            "items": {"type": "string"},
            "description": "Topics, named entities and keywords"
        }
    },
    "required": ["tags"],
    "additionalProperties": False
}

TRANSLATION_SCHEMA = {
    "type": "object",
    "properties": {
        "translations": {
            "type": "array",
            "items": {"type": "string"},
            "description": "Translated texts in the same order as the input"
        }
    },
    "required": ["translations"],
    "additionalProperties": False
}

POLITICAL_BIAS_SCHEMA = {
    "type": "object",
    "properties": {
        "bias": {
            "type": "string",
            "enum": ["left", "lean-left", "center", "lean-right", "right", "unknown"]
        },
        "explanation": {"type": "string"}
    },
    "required": ["bias", "explanation"],
    "additionalProperties": False
}

SENTIMENT_SCHEMA = {
    "type": "object",
    "properties": {
        "sentiment": {
            "type": "string",
            "enum": ["positive", "negative", "neutral"]
        },
        "confidence": {"type": "number"},
        "explanation": {"type": "string"}
    },
    "required": ["sentiment", "confidence", "explanation"],
    "additionalProperties": False
}

COGNITIVE_BIAS_SCHEMA = {
    "type": "object",
    "properties": {
        "biases": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "bias": {"type": "string"},
                    "snippet": {"type": "string"},
                    "explanation": {"type": "string"},
                    "severity": {"type": "string", "enum": ["low", "medium", "high"]},
                    "category": {"type": "string"}
                },
                "required": ["bias", "snippet", "explanation", "severity", "category"],
                "additionalProperties": False
            }
        }
    },
    "required": ["biases"],
    "additionalProperties": False
}

ANTITHESIS_SCHEMA = {
    "type": "object",
    "properties": {
        "antithesis": {
            "type": "string",
            "description": "The strongest opposing reading of the article's main claim"
        }
    },
    "required": ["antithesis"],
    "additionalProperties": False
}

PHILOSOPHICAL_SCHEMA = {
    "type": "object",
    "properties": {
        "philosophical": {"type": "string"},
        "themes": {"type": "array", "items": {"type": "string"}},
        "worldview": {"type": "string"},
        "ethical_questions": {"type": "array", "items": {"type": "string"}},
        "traditions": {"type": "array", "items": {"type": "string"}},
        "explanation": {"type": "string"}
    },
    "required": ["philosophical", "themes", "worldview", "ethical_questions", "traditions", "explanation"],
    "additionalProperties": False
}

_SCHEMAS = {
    "summary": SUMMARY_SCHEMA,
    "tags": TAGS_SCHEMA,
    "translation": TRANSLATION_SCHEMA,
    "political_bias": POLITICAL_BIAS_SCHEMA,
    "sentiment": SENTIMENT_SCHEMA,
    "cognitive_bias": COGNITIVE_BIAS_SCHEMA,
    "antithesis": ANTITHESIS_SCHEMA,
    "philosophical": PHILOSOPHICAL_SCHEMA,
}


def get_schema_by_type(analysis_type: str) -> Dict[str, Any]:
    """
    Get JSON schema by analysis type.

    Raises:
        ValueError: If analysis type is unknown
    """
    if analysis_type not in _SCHEMAS:
        raise ValueError(f"Unknown analysis type: {analysis_type}. Available: {', '.join(_SCHEMAS)}")
    return _SCHEMAS[analysis_type]
