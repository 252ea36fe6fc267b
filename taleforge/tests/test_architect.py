"""
Tests for the character-creation helpers and their fallbacks.
"""

import random

import pytest
from conftest import ScriptedProvider

from taleforge.engine.architect import CAMPAIGN_SCHEMA, CampaignArchitect
from taleforge.providers.mock import MOCK_NAMES

CAMPAIGN = {
    "title": "Salt and Thunder",
    "act1": "A wrecked ship washes ashore.",
    "act2": "The crew are not what they seem.",
    "act3": "The sea god comes to collect.",
    "possible_endings": ["Drown", "Bargain", "Sail away"],
    "world_backstory": "The coast is poor and proud.",
    "character_backstory": "Ilsa was the only survivor.",
}


class TestNames:
    @pytest.mark.asyncio
    async def test_name_cleaned(self):
        architect = CampaignArchitect(ScriptedProvider(['"Thessaly"\nA fine name']))
        assert await architect.generate_name("Female", "Elf", "Mage") == "Thessaly"

    @pytest.mark.asyncio
    async def test_name_fallback_on_error(self):
        architect = CampaignArchitect(
            ScriptedProvider([RuntimeError("offline")]), rng=random.Random(7)
        )
        assert await architect.generate_name("Female", "Elf", "Mage") in MOCK_NAMES

    @pytest.mark.asyncio
    async def test_overlong_name_rejected(self):
        architect = CampaignArchitect(ScriptedProvider(["x" * 80]))
        assert await architect.generate_name("Male", "Dwarf", "Cleric") in MOCK_NAMES


class TestVisuals:
    @pytest.mark.asyncio
    async def test_description_returned(self):
        provider = ScriptedProvider(["Tall, silver hair, green cloak"])
        architect = CampaignArchitect(provider)
        assert await architect.generate_visuals("Female", "Elf", "Ranger") == (
            "Tall, silver hair, green cloak"
        )
        assert "visual description" in provider.calls[0][0].content

    @pytest.mark.asyncio
    async def test_description_fallback(self):
        architect = CampaignArchitect(ScriptedProvider(["   "]))
        description = await architect.generate_visuals("Female", "Elf", "Ranger")
        assert description.startswith("A Female Elf Ranger")


class TestCampaign:
    """Campaign generation never fails the request"""

    @pytest.mark.asyncio
    async def test_campaign_parsed(self):
        provider = ScriptedProvider([CAMPAIGN])
        architect = CampaignArchitect(provider)
        campaign = await architect.generate_campaign("Ilsa", "Female", "Human", "Bard", theme="pirates")

        assert campaign.title == "Salt and Thunder"
        assert provider.schemas[0] is CAMPAIGN_SCHEMA
        assert "pirates" in provider.calls[0][1].content

    @pytest.mark.asyncio
    async def test_invalid_campaign_falls_back(self):
        architect = CampaignArchitect(ScriptedProvider([{"title": "Half a story"}]))
        campaign = await architect.generate_campaign("Ilsa", "Female", "Human", "Bard")
        assert campaign.title == "The Shadow of the Void"
        assert "Ilsa was once a respected Bard" in campaign.character_backstory

    @pytest.mark.asyncio
    async def test_provider_error_falls_back(self):
        architect = CampaignArchitect(ScriptedProvider([RuntimeError("offline")]))
        campaign = await architect.generate_campaign("Ilsa", "Female", "Human", "Bard")
        assert campaign.possible_endings == ["Hero", "Tyrant", "Martyr"]
