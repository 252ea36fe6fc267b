"""
Character-creation helpers: names, looks and campaign skeletons.

These calls are conveniences for the creation screen. They never fail the
request: when the model is unreachable or answers badly, a placeholder is
returned instead and nothing is persisted either way.
"""

import random
from typing import Any, Dict, Optional

from langchain_core.messages import HumanMessage, SystemMessage

from taleforge import prompts
from taleforge.providers.base import BaseProvider
from taleforge.providers.mock import MOCK_NAMES
from taleforge.schemas.adventure import CampaignData
from taleforge.schemas.validation import parse_json_object, validate_campaign
from taleforge.utils.logger import get_logger

logger = get_logger(__name__)

CAMPAIGN_SCHEMA: Dict[str, Any] = CampaignData.schema()

MAX_NAME_LENGTH = 40


def fallback_campaign(name: str, character_class: str) -> CampaignData:
    return CampaignData(
        title="The Shadow of the Void",
        act1="You awaken in a cold, dark cell with no memory of how you arrived.",
        act2="A mysterious artifact whispers to you, promising power at a terrible cost.",
        act3="You must choose between saving the realm or becoming its new tyrant.",
        possible_endings=["Hero", "Tyrant", "Martyr"],
        world_backstory="The world of Aethelgard is crumbling under the weight of an ancient curse.",
        character_backstory=f"{name} was once a respected {character_class} before the darkness fell.",
    )


class CampaignArchitect:
    """Asks the provider for creation-screen content"""

    def __init__(self, provider: BaseProvider, rng: Optional[random.Random] = None):
        self.provider = provider
        self.rng = rng or random.Random()

    async def generate_name(self, gender: str, race: str, character_class: str) -> str:
        prompt = prompts.NAME_GENERATION_USER.format(
            gender=gender, race=race, character_class=character_class
        )
        try:
            response = await self.provider.chat([HumanMessage(content=prompt)])
            name = response.content.replace('"', "").replace("'", "").strip()
            name = name.splitlines()[0].strip() if name else ""
            if not name or len(name) > MAX_NAME_LENGTH:
                raise ValueError(f"Unusable name: {response.content!r}")
            logger.info(f"[Architect] Generated name {name!r}")
            return name
        except Exception as e:
            logger.warning(f"[Architect] Name generation failed: {e}")
            return self.rng.choice(MOCK_NAMES)

    async def generate_visuals(self, gender: str, race: str, character_class: str) -> str:
        prompt = prompts.VISUALS_GENERATION_USER.format(
            gender=gender, race=race, character_class=character_class
        )
        try:
            response = await self.provider.chat([HumanMessage(content=prompt)])
            description = response.content.strip()
            if not description:
                raise ValueError("Empty description")
            return description
        except Exception as e:
            logger.warning(f"[Architect] Visual description failed: {e}")
            return f"A {gender} {race} {character_class} standing in a dimly lit dungeon."

    async def generate_campaign(
        self,
        name: str,
        gender: str,
        race: str,
        character_class: str,
        theme: Optional[str] = None,
    ) -> CampaignData:
        """Three-act campaign for a new character, or the stock one on failure."""
        messages = [
            SystemMessage(content=prompts.CAMPAIGN_GENERATION_SYSTEM),
            HumanMessage(
                content=prompts.CAMPAIGN_GENERATION_USER.format(
                    name=name,
                    gender=gender,
                    race=race,
                    character_class=character_class,
                    theme=theme or prompts.DEFAULT_THEME,
                )
            ),
        ]
        try:
            response = await self.provider.chat(messages, json_schema=CAMPAIGN_SCHEMA)
            campaign = validate_campaign(parse_json_object(response.content))
            logger.info(f"[Architect] Campaign: {campaign.title!r}")
            return campaign
        except Exception as e:
            logger.warning(f"[Architect] Campaign generation failed: {e}")
            return fallback_campaign(name, character_class)
