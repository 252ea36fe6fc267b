"""
Schema validation utilities
"""

import json
from typing import Any, Dict

from jsonschema import ValidationError, validate

from .adventure import CampaignData
from .turn import EPILOGUE_SCHEMA, TURN_RESPONSE_SCHEMA, Epilogue, TurnResponse


def parse_json_object(raw: str) -> Dict[str, Any]:
    """Decode model output into a single JSON object"""
    text = raw.strip()
    if text.startswith("```"):
        text = text.strip("`")
        if text.startswith("json"):
            text = text[4:]
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError(f"Output is not valid JSON: {e}")

    # Some models wrap the object in a one-element list
    if isinstance(data, list) and len(data) == 1:
        data = data[0]
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
    return data


def validate_json_schema(data: Dict[str, Any], schema: Dict[str, Any]) -> bool:
    """Validate data against a JSON schema"""
    try:
        validate(instance=data, schema=schema)
        return True
    except ValidationError as e:
        raise ValueError(f"JSON schema validation failed: {e.message}")


def validate_turn_response(data: Dict[str, Any]) -> TurnResponse:
    """Validate and parse a narrator turn"""
    validate_json_schema(data, TURN_RESPONSE_SCHEMA)
    try:
        return TurnResponse(**data)
    except Exception as e:
        raise ValueError(f"Invalid turn response: {e}")


def validate_epilogue(data: Dict[str, Any]) -> Epilogue:
    validate_json_schema(data, EPILOGUE_SCHEMA)
    return Epilogue(**data)


def validate_campaign(data: Dict[str, Any]) -> CampaignData:
    """Validate and parse campaign data"""
    try:
        return CampaignData(**data)
    except Exception as e:
        raise ValueError(f"Invalid campaign data: {e}")
