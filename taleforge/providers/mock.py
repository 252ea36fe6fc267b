"""
Deterministic offline narrator.

Selected with ``MODEL_PROVIDER=mock`` for local development and tests. It reads
the scene state the narrator embeds in the system message and answers with
well-formed content for whichever schema it was asked for.
"""

import json
from typing import Any, Dict, List, Optional

from langchain_core.messages import BaseMessage, SystemMessage

from taleforge.prompts import SCENE_STATE_MARKER
from taleforge.utils.logger import get_logger

from .base import BaseProvider, ProviderResponse

logger = get_logger(__name__)


MOCK_NAMES = ["Thorgar", "Elara", "Kaelen", "Nyx", "Valen", "Sylas", "Aria", "Dorn"]


class MockProvider(BaseProvider):
    """Offline provider that never calls out"""

    name = "mock"

    def __init__(
        self, api_base: str = "", api_key: str = "", model_name: str = "mock-narrator"
    ):
        super().__init__(api_base, api_key, model_name)

    async def chat(
        self,
        messages: List[BaseMessage],
        json_schema: Optional[Dict[str, Any]] = None,
        **kwargs,
    ) -> ProviderResponse:
        title = (json_schema or {}).get("title")
        prompt = str(messages[-1].content) if messages else ""

        if title == "TurnResponse":
            payload: Any = self._turn(self._scene_state(messages))
        elif title == "CampaignData":
            payload = self._campaign(prompt)
        elif title == "Epilogue":
            payload = self._epilogue(self._scene_state(messages))
        elif "visual description" in prompt:
            return ProviderResponse(
                content="A weathered adventurer standing in a dimly lit dungeon.",
                model=self.model_name,
            )
        else:
            index = sum(ord(ch) for ch in prompt) % len(MOCK_NAMES)
            return ProviderResponse(content=MOCK_NAMES[index], model=self.model_name)

        logger.debug(f"Mock provider answered {title}")
        return ProviderResponse(content=json.dumps(payload), model=self.model_name)

    async def health_check(self) -> bool:
        return True

    @staticmethod
    def _scene_state(messages: List[BaseMessage]) -> Dict[str, Any]:
        for message in messages:
            if not isinstance(message, SystemMessage):
                continue
            for line in str(message.content).splitlines():
                if line.startswith(SCENE_STATE_MARKER):
                    return json.loads(line[len(SCENE_STATE_MARKER) :])
        return {}

    @staticmethod
    def _turn(state: Dict[str, Any]) -> Dict[str, Any]:
        turn_number = state.get("turn_number", 1)
        hp = state.get("hp", 10)
        gold = state.get("gold", 0)
        roll = state.get("dice_roll")

        if roll is not None and roll <= 5:
            hp -= 3
        elif roll is not None and roll >= 15:
            gold += 5

        game_over = hp <= 0
        return {
            "narrative": (
                "You venture deeper into the darkness. The air grows colder. "
                f"(Turn {turn_number})\n\n*\"What do you seek?\"* a voice echoes."
            ),
            "visual_prompt": "A dark corridor with glowing runes",
            "hp_current": hp,
            "gold": gold,
            "inventory": list(state.get("inventory", [])),
            "options": [] if game_over else ["Search the area", "Call out", "Draw weapon"],
            "game_over": game_over,
        }

    @staticmethod
    def _campaign(prompt: str) -> Dict[str, Any]:
        return {
            "title": "The Shadow of the Void",
            "act1": "You awaken in a cold, dark cell with no memory of how you arrived.",
            "act2": "A mysterious artifact whispers to you, promising power at a terrible cost.",
            "act3": "You must choose between saving the realm or becoming its new tyrant.",
            "possible_endings": ["Hero", "Tyrant", "Martyr"],
            "world_backstory": "The world of Aethelgard is crumbling under the weight of an ancient curse.",
            "character_backstory": "Once respected, now hunted, the hero walks alone.",
        }

    @staticmethod
    def _epilogue(state: Dict[str, Any]) -> Dict[str, Any]:
        ending = state.get("ending_type") or "victory"
        return {
            "epilogue_title": "The Last Page",
            "epilogue_text": "The tale is told, and the realm remembers.",
            "ending_type": ending,
            "legacy": "Bards sing of the deeds done here.",
            "visual_prompt": "A lone figure at dawn above a quiet valley",
        }
