"""
Pydantic models and JSON schemas for TaleForge
"""

from .adventure import (
    AdventureCreateRequest,
    CampaignData,
    CampaignRequest,
    CharacterProfile,
    CharacterSeed,
    TurnRequest,
    UserSync,
)
from .turn import (
    EPILOGUE_SCHEMA,
    OPTION_COUNT,
    TURN_RESPONSE_SCHEMA,
    Epilogue,
    TurnResponse,
)
from .validation import (
    parse_json_object,
    validate_campaign,
    validate_epilogue,
    validate_turn_response,
)

__all__ = [
    # Adventure models
    "AdventureCreateRequest",
    "CampaignData",
    "CampaignRequest",
    "CharacterProfile",
    "CharacterSeed",
    "TurnRequest",
    "UserSync",
    # Narrator contracts
    "TurnResponse",
    "Epilogue",
    "TURN_RESPONSE_SCHEMA",
    "EPILOGUE_SCHEMA",
    "OPTION_COUNT",
    # Validation functions
    "parse_json_object",
    "validate_turn_response",
    "validate_epilogue",
    "validate_campaign",
]
