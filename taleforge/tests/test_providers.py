"""
Tests for provider selection and the offline mock narrator.
"""

from unittest.mock import patch

import pytest
from langchain_core.messages import HumanMessage

from taleforge.config import Settings
from taleforge.engine.narrator import GeneratorRequest, Narrator
from taleforge.providers import (
    GenericProvider,
    MockProvider,
    OpenAIProvider,
    create_provider,
)
from taleforge.providers.mock import MOCK_NAMES
from taleforge.schemas.turn import EPILOGUE_SCHEMA


def mock_request(**state) -> GeneratorRequest:
    scene = {
        "turn_number": 2,
        "max_turns": -1,
        "hp": 10,
        "gold": 4,
        "inventory": ["Staff"],
        "dice_roll": None,
    }
    scene.update(state)
    return GeneratorRequest(
        system_prompt="Role: Dungeon Master.", scene_state=scene, player_action="Look around"
    )


class TestFactory:
    """Test create_provider()"""

    def test_mock(self):
        provider = create_provider(Settings(model_provider="mock"))
        assert isinstance(provider, MockProvider)

    @patch("taleforge.providers.generic.ChatOpenAI")
    def test_openai(self, mock_chat):
        provider = create_provider(
            Settings(model_provider="openai", openai_api_key="sk-test", model_name="gpt-4o-mini")
        )
        assert isinstance(provider, OpenAIProvider)
        assert provider.model_name == "gpt-4o-mini"

    @patch("taleforge.providers.generic.ChatOpenAI")
    def test_generic(self, mock_chat):
        provider = create_provider(
            Settings(model_provider="generic", openai_api_base="http://localhost:1234/v1")
        )
        assert type(provider) is GenericProvider
        assert provider.api_base == "http://localhost:1234/v1"

    def test_unsupported(self):
        settings = Settings(model_provider="mock")
        settings.model_provider = "carrier-pigeon"
        with pytest.raises(ValueError, match="Unsupported provider"):
            create_provider(settings)


class TestMockProvider:
    """The mock reads the scene state and honours the turn contract"""

    @pytest.mark.asyncio
    async def test_plain_turn(self):
        turn = await Narrator(MockProvider()).narrate(mock_request())
        assert turn.hp_current == 10
        assert turn.gold == 4
        assert turn.inventory == ["Staff"]
        assert len(turn.options) == 3
        assert "(Turn 2)" in turn.narrative

    @pytest.mark.asyncio
    async def test_low_roll_hurts(self):
        turn = await Narrator(MockProvider()).narrate(mock_request(dice_roll=2))
        assert turn.hp_current == 7

    @pytest.mark.asyncio
    async def test_high_roll_pays(self):
        turn = await Narrator(MockProvider()).narrate(mock_request(dice_roll=18))
        assert turn.gold == 9

    @pytest.mark.asyncio
    async def test_lethal_roll_ends_game(self):
        turn = await Narrator(MockProvider()).narrate(mock_request(hp=2, dice_roll=1))
        assert turn.game_over is True
        assert turn.options == []

    @pytest.mark.asyncio
    async def test_name_is_deterministic(self):
        provider = MockProvider()
        messages = [HumanMessage(content="Generate a SINGLE creative fantasy name")]
        first = await provider.chat(messages)
        second = await provider.chat(messages)
        assert first.content == second.content
        assert first.content in MOCK_NAMES

    @pytest.mark.asyncio
    async def test_epilogue_echoes_ending(self):
        provider = MockProvider()
        response = await provider.chat(
            [HumanMessage(content="Write the epilogue.")], json_schema=EPILOGUE_SCHEMA
        )
        assert '"ending_type": "victory"' in response.content

    @pytest.mark.asyncio
    async def test_health_check(self):
        assert await MockProvider().health_check() is True
