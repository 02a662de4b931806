"""
Turn raw vision-model text into an ``ExtractionResult``.

Three stages, tried in order:

1. ``parsed``    – the whole content is a JSON object.
2. ``recovered`` – the slice from the first ``{`` to the last ``}`` is.
3. ``fallback``  – nothing parses; an empty zero-confidence result carrying
   the full content as ``raw_text``.

A parsed object is kept verbatim, whatever its field types. Parsing never
raises: a garbled receipt is expected input, not an error.
"""
from __future__ import annotations

import json
import logging
import math
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel

from receiptsnap.schemas import LOW_CONFIDENCE_CAP, ExtractionResult

logger = logging.getLogger(__name__)


class ParseKind(str, Enum):
    PARSED = "parsed"
    RECOVERED = "recovered"
    FALLBACK = "fallback"


class ParseOutcome(BaseModel):
    kind: ParseKind
    extraction: ExtractionResult


def _load_object(text: str) -> Optional[dict[str, Any]]:
    try:
        value = json.loads(text)
    except ValueError:
        return None
    return value if isinstance(value, dict) else None


def _brace_slice(text: str) -> Optional[str]:
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return None
    return text[start : end + 1]


def coerce_number(value: Any) -> Optional[float]:
    """Numeric reading of a model-supplied value, or None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip().lstrip("$").replace(",", ""))
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def fallback_extraction(content: str) -> ExtractionResult:
    return ExtractionResult(confidence_score=0.0, raw_text=content)


def apply_confidence_rules(extraction: ExtractionResult) -> ExtractionResult:
    """Cap confidence when the model could not name the subscription."""
    if not extraction.has_usable_name:
        score = coerce_number(extraction.confidence_score) or 0.0
        extraction.confidence_score = min(score, LOW_CONFIDENCE_CAP)
    return extraction


def parse_extraction(content: str) -> ParseOutcome:
    payload = _load_object(content)
    kind = ParseKind.PARSED

    if payload is None:
        candidate = _brace_slice(content)
        payload = _load_object(candidate) if candidate else None
        kind = ParseKind.RECOVERED

    if payload is None:
        logger.warning("Could not parse model output; using fallback (first 200 chars: %r)", content[:200])
        return ParseOutcome(kind=ParseKind.FALLBACK, extraction=apply_confidence_rules(fallback_extraction(content)))

    extraction = ExtractionResult.model_validate(payload)
    return ParseOutcome(kind=kind, extraction=apply_confidence_rules(extraction))
