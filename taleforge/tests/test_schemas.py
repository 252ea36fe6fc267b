"""
Unit tests for the narrator output contracts and request models.
"""

import pytest
from conftest import turn_payload
from pydantic import ValidationError

from taleforge.schemas.adventure import CampaignData, CharacterProfile, TurnRequest
from taleforge.schemas.turn import TurnResponse
from taleforge.schemas.validation import (
    parse_json_object,
    validate_campaign,
    validate_epilogue,
    validate_turn_response,
)


class TestTurnResponse:
    """Test the turn contract"""

    def test_valid_turn(self):
        turn = validate_turn_response(turn_payload(hp=25, gold=15))
        assert turn.hp_current == 25
        assert turn.options == ["Fight", "Flee", "Parley"]

    def test_game_over_without_options(self):
        turn = validate_turn_response(turn_payload(hp=0, gold=3, game_over=True))
        assert turn.game_over is True
        assert turn.options == []

    def test_game_over_with_options_rejected(self):
        data = turn_payload(hp=0, gold=3, game_over=True)
        data["options"] = ["Fight", "Flee", "Parley"]
        with pytest.raises(ValueError):
            validate_turn_response(data)

    @pytest.mark.parametrize(
        "field, value", [("hp_current", 10**20), ("gold", 10**7), ("gold", -(10**20))]
    )
    def test_stats_out_of_range_rejected(self, field, value):
        data = turn_payload(hp=10, gold=3)
        data[field] = value
        with pytest.raises(ValueError):
            validate_turn_response(data)
        with pytest.raises(ValidationError):
            TurnResponse(**data)

    def test_negative_hp_within_range_accepted(self):
        turn = validate_turn_response(turn_payload(hp=-12, gold=0, game_over=True))
        assert turn.hp_current == -12

    def test_two_options_rejected(self):
        data = turn_payload(hp=10, gold=3)
        data["options"] = ["Fight", "Flee"]
        with pytest.raises(ValueError):
            validate_turn_response(data)

    def test_four_options_rejected_by_json_schema(self):
        data = turn_payload(hp=10, gold=3)
        data["options"].append("Dance")
        with pytest.raises(ValueError, match="JSON schema"):
            validate_turn_response(data)

    def test_missing_field_rejected(self):
        data = turn_payload(hp=10, gold=3)
        del data["visual_prompt"]
        with pytest.raises(ValueError):
            validate_turn_response(data)

    def test_extra_field_rejected_by_model(self):
        data = turn_payload(hp=10, gold=3)
        data["weather"] = "rain"
        with pytest.raises(ValidationError):
            TurnResponse(**data)

    def test_empty_narrative_rejected(self):
        data = turn_payload(hp=10, gold=3, narrative="")
        with pytest.raises(ValueError):
            validate_turn_response(data)


class TestParseJsonObject:
    """Test decoding of raw model output"""

    def test_plain_object(self):
        assert parse_json_object('{"a": 1}') == {"a": 1}

    def test_fenced_object(self):
        assert parse_json_object('```json\n{"a": 1}\n```') == {"a": 1}

    def test_single_element_list_unwrapped(self):
        assert parse_json_object('[{"a": 1}]') == {"a": 1}

    def test_prose_rejected(self):
        with pytest.raises(ValueError, match="not valid JSON"):
            parse_json_object("Once upon a time")

    def test_scalar_rejected(self):
        with pytest.raises(ValueError, match="JSON object"):
            parse_json_object("42")


class TestRequestModels:
    """Test the API request models"""

    def test_character_class_alias(self):
        character = CharacterProfile(
            **{"name": "Ilsa", "race": "Elf", "class": "Mage", "gender": "Female"}
        )
        assert character.character_class == "Mage"

    def test_character_fields_stripped(self):
        character = CharacterProfile(
            name="  Ilsa ", race="Elf", character_class="Mage", gender="Female"
        )
        assert character.name == "Ilsa"

    def test_blank_character_name_rejected(self):
        with pytest.raises(ValidationError):
            CharacterProfile(name="  ", race="Elf", character_class="Mage", gender="Female")

    def test_campaign_needs_an_ending(self):
        with pytest.raises(ValidationError):
            CampaignData(title="t", act1="a", act2="b", act3="c", possible_endings=[])

    def test_validate_campaign_wraps_errors(self):
        with pytest.raises(ValueError, match="Invalid campaign data"):
            validate_campaign({"title": "Only a title"})

    def test_turn_request_defaults(self):
        request = TurnRequest()
        assert request.action is None
        assert request.dice_roll is None

    def test_epilogue(self):
        epilogue = validate_epilogue(
            {
                "epilogue_title": "Dawn",
                "epilogue_text": "It ended.",
                "ending_type": "victory",
                "legacy": "Remembered.",
                "visual_prompt": "Sunrise",
            }
        )
        assert epilogue.ending_type == "victory"
