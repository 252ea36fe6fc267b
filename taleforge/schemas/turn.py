"""
Narrator output contracts: one turn and the closing epilogue
"""

from typing import List

from pydantic import BaseModel, Field, validator

OPTION_COUNT = 3

# Hit points and gold the narrator may report, either sign. Values stay far
# inside SQLite INTEGER range.
STAT_LIMIT = 1_000_000

# Passed to with_structured_output() and checked with jsonschema before
# pydantic parsing. Field order matches the narrator prompt.
TURN_RESPONSE_SCHEMA = {
    "title": "TurnResponse",
    "description": "One narrated turn of the adventure",
    "type": "object",
    "properties": {
        "narrative": {"type": "string", "minLength": 1},
        "visual_prompt": {"type": "string"},
        "hp_current": {
            "type": "integer",
            "minimum": -STAT_LIMIT,
            "maximum": STAT_LIMIT,
        },
        "gold": {"type": "integer", "minimum": -STAT_LIMIT, "maximum": STAT_LIMIT},
        "inventory": {"type": "array", "items": {"type": "string"}},
        "options": {
            "type": "array",
            "items": {"type": "string"},
            "maxItems": OPTION_COUNT,
        },
        "game_over": {"type": "boolean"},
    },
    "required": [
        "narrative",
        "visual_prompt",
        "hp_current",
        "gold",
        "inventory",
        "options",
        "game_over",
    ],
    "additionalProperties": False,
}

EPILOGUE_SCHEMA = {
    "title": "Epilogue",
    "description": "Closing chapter written once the adventure ends",
    "type": "object",
    "properties": {
        "epilogue_title": {"type": "string"},
        "epilogue_text": {"type": "string"},
        "ending_type": {"type": "string"},
        "legacy": {"type": "string"},
        "visual_prompt": {"type": "string"},
    },
    "required": [
        "epilogue_title",
        "epilogue_text",
        "ending_type",
        "legacy",
        "visual_prompt",
    ],
}


class TurnResponse(BaseModel):
    """Structured result of one narrator call"""

    narrative: str = Field(..., min_length=1, description="Story text (Markdown)")
    visual_prompt: str = Field(..., description="Image prompt for the current scene")
    hp_current: int = Field(
        ..., ge=-STAT_LIMIT, le=STAT_LIMIT, description="Hit points after this turn"
    )
    gold: int = Field(
        ..., ge=-STAT_LIMIT, le=STAT_LIMIT, description="Gold after this turn"
    )
    inventory: List[str] = Field(default_factory=list)
    options: List[str] = Field(default_factory=list)
    game_over: bool = Field(..., description="Whether the story ends on this turn")

    @validator("game_over")
    def validate_option_count(cls, v, values):
        options = values.get("options")
        if options is None:
            return v
        expected = 0 if v else OPTION_COUNT
        if len(options) != expected:
            raise ValueError(
                f"Expected {expected} options when game_over={v}, got {len(options)}"
            )
        return v

    class Config:
        extra = "forbid"  # Reject unknown keys (additionalProperties: false)


class Epilogue(BaseModel):
    """Decorative closing chapter stored on a completed adventure"""

    epilogue_title: str
    epilogue_text: str
    ending_type: str
    legacy: str
    visual_prompt: str = ""
