"""
Turn a raw occupier email into an ExtractedWorkOrder via the LLM.

Extraction never fails hard: a missing key, an LLM error or an unparseable
response all yield a default payload (OTHER / MEDIUM) carrying the start of
the email as its description, so the decision engine still produces a plan.
"""
from __future__ import annotations

import json
import logging
import re
from typing import Any, Optional

from pydantic import ValidationError

from llm import LLMCall, call_llm, strip_code_fences
from models import ExtractedWorkOrder, Priority, infer_category

logger = logging.getLogger(__name__)

DEFAULT_DESCRIPTION_CHARS = 500

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")

# Response keys may come back camelCase.
_KEY_ALIASES = {
    "propertyName": "property_name",
    "spaceLabel": "space_label",
    "occupierName": "occupier_name",
    "occupierEmail": "occupier_email",
    "issueCategory": "issue_category",
    "accessConstraints": "access_constraints",
    "reportedAt": "reported_at",
}

EXTRACTION_PROMPT = """You are a commercial real estate property management assistant. Analyze the following email from an occupier (commercial tenant) reporting a maintenance issue.

Return ONLY a JSON object with these keys (null when not mentioned):
{{
  "property_name": "property / building / shopping center name",
  "space_label": "suite, bay, floor or space identifier",
  "occupier_name": "business name of the occupier",
  "occupier_email": "sender email address",
  "issue_category": "one of ROOFING, HVAC, PLUMBING, ELECTRICAL, LIFE_SAFETY, GENERAL, OTHER",
  "description": "the problem in plain language",
  "severity": "one of LOW, MEDIUM, HIGH, EMERGENCY",
  "access_constraints": "access restrictions, store hours, special instructions",
  "reported_at": "ISO datetime if stated"
}}

Severity guide: EMERGENCY for fire, gas, flooding, burning smell, blocked egress; HIGH for active leaks, no HVAC in extreme weather, power loss; MEDIUM for comfort issues and minor leaks; LOW for cosmetic or routine requests.

EMAIL TEXT:
---
{email}
---

JSON:"""


def default_extraction(raw_email: str) -> ExtractedWorkOrder:
    return ExtractedWorkOrder(
        issue_category=infer_category(raw_email),
        severity=Priority.MEDIUM,
        description=(raw_email or "").strip()[:DEFAULT_DESCRIPTION_CHARS],
    )


def _normalize_keys(data: dict[str, Any]) -> dict[str, Any]:
    return {_KEY_ALIASES.get(k, k): v for k, v in data.items()}


def parse_extracted_work_order(raw_response: Optional[str], raw_email: str) -> ExtractedWorkOrder:
    """Parse the first JSON object in an LLM response; fall back to defaults on any problem."""
    match = _JSON_OBJECT.search(strip_code_fences(raw_response or ""))
    if not match:
        logger.warning("[extract] no JSON object in LLM response, using defaults")
        return default_extraction(raw_email)
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        logger.warning("[extract] invalid JSON in LLM response: %s", e)
        return default_extraction(raw_email)
    if not isinstance(data, dict):
        return default_extraction(raw_email)
    try:
        return ExtractedWorkOrder.model_validate(_normalize_keys(data))
    except ValidationError as e:
        logger.warning("[extract] extraction failed validation: %s", e.errors()[:3])
        return default_extraction(raw_email)


def extract_work_order_from_email(raw_email: str, llm: LLMCall = call_llm) -> ExtractedWorkOrder:
    try:
        response = llm(EXTRACTION_PROMPT.format(email=raw_email))
    except Exception as e:
        logger.warning("[extract] LLM extraction unavailable: %s", e)
        return default_extraction(raw_email)
    return parse_extracted_work_order(response, raw_email)
