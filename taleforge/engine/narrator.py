"""
Narrator: turns a reconstructed context into one validated turn.

The narrator owns the conversation layout sent to the model and the strict
output contract coming back. Any deviation from the contract is an error;
the orchestrator decides what that means for the adventure.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from taleforge import prompts, rules
from taleforge.engine.reconstructor import ConversationEntry
from taleforge.providers.base import BaseProvider
from taleforge.schemas.turn import EPILOGUE_SCHEMA, TURN_RESPONSE_SCHEMA, Epilogue, TurnResponse
from taleforge.schemas.validation import (
    parse_json_object,
    validate_epilogue,
    validate_turn_response,
)
from taleforge.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class GeneratorRequest:
    """Everything the narrator sees for one turn"""

    system_prompt: str
    scene_state: Dict[str, Any]
    history: List[ConversationEntry] = field(default_factory=list)
    player_action: str = ""

    def to_messages(self) -> List[BaseMessage]:
        state = json.dumps(self.scene_state, sort_keys=True, ensure_ascii=False)
        messages: List[BaseMessage] = [
            SystemMessage(content=f"{self.system_prompt}\n\n{prompts.SCENE_STATE_MARKER}{state}")
        ]
        for entry in self.history:
            if entry.role == "user":
                messages.append(HumanMessage(content=entry.content))
            else:
                messages.append(AIMessage(content=entry.content))
        messages.append(HumanMessage(content=self.player_action))
        return messages


def build_system_prompt(adventure: Dict[str, Any]) -> str:
    """Fixed per-adventure instructions: character, campaign and rules"""
    campaign = adventure["campaign_data"] or {}
    return prompts.NARRATOR_SYSTEM.format(
        theme=adventure.get("theme_seeds") or prompts.DEFAULT_THEME,
        name=adventure["character_name"],
        gender=adventure["character_gender"],
        race=adventure["character_race"],
        character_class=adventure["character_class"],
        description=adventure.get("character_description") or "",
        bonuses=rules.character_bonuses(
            adventure["character_class"], adventure["character_race"]
        ),
        title=campaign.get("title", ""),
        act1=campaign.get("act1", ""),
        act2=campaign.get("act2", ""),
        act3=campaign.get("act3", ""),
        endings=" | ".join(campaign.get("possible_endings", [])),
    )


def build_scene_state(
    adventure: Dict[str, Any], turn_number: int, dice_roll: Optional[int]
) -> Dict[str, Any]:
    """Structured state for the turn being generated"""
    return {
        "turn_number": turn_number,
        "max_turns": adventure["max_turns"],
        "hp": adventure["current_hp"],
        "gold": adventure["gold"],
        "inventory": list(adventure["inventory"]),
        "dice_roll": dice_roll,
    }


def opening_instruction(adventure: Dict[str, Any]) -> str:
    campaign = adventure["campaign_data"] or {}
    return prompts.OPENING_INSTRUCTION.format(
        act1=str(campaign.get("act1", "")).rstrip("."),
        name=adventure["character_name"],
    )


class Narrator:
    """Talks to the provider and enforces the turn contract"""

    def __init__(self, provider: BaseProvider):
        self.provider = provider

    async def narrate(self, request: GeneratorRequest) -> TurnResponse:
        """
        Generate one turn.

        Raises:
            ValueError: If the output does not satisfy the turn contract
            Exception: Whatever the provider raised
        """
        response = await self.provider.chat(
            request.to_messages(), json_schema=TURN_RESPONSE_SCHEMA
        )
        data = parse_json_object(response.content)
        turn = validate_turn_response(data)
        logger.debug(
            f"[Narrator] Turn {request.scene_state.get('turn_number')}: "
            f"hp={turn.hp_current}, gold={turn.gold}, game_over={turn.game_over}"
        )
        return turn

    async def write_epilogue(
        self, adventure: Dict[str, Any], turns: List[Dict[str, Any]]
    ) -> Epilogue:
        """Compose the closing chapter for a completed adventure."""
        campaign = adventure["campaign_data"] or {}
        system = prompts.EPILOGUE_SYSTEM.format(
            name=adventure["character_name"],
            race=adventure["character_race"],
            character_class=adventure["character_class"],
            title=campaign.get("title", ""),
            ending_type=adventure["ending_type"],
            turn_count=adventure["turn_count"],
            hp=adventure["current_hp"],
            gold=adventure["gold"],
            endings=" | ".join(campaign.get("possible_endings", [])),
        )
        state = json.dumps({"ending_type": adventure["ending_type"]})
        story = "\n\n".join(
            f"> {t['player_action']}\n{t['narrative']}" for t in turns
        )
        messages: List[BaseMessage] = [
            SystemMessage(content=f"{system}\n\n{prompts.SCENE_STATE_MARKER}{state}"),
            HumanMessage(content=prompts.EPILOGUE_USER.format(story=story)),
        ]
        response = await self.provider.chat(messages, json_schema=EPILOGUE_SCHEMA)
        return validate_epilogue(parse_json_object(response.content))
