"""
Rebuild playable state from stored turns.

The narrator has no memory besides the replayed history, so live play and a
resumed session must build it the same way. Both go through `reconstruct()`.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from taleforge.engine.errors import HistoryCorrupted
from taleforge.utils.logger import get_logger

logger = get_logger(__name__)

# Keys replayed to the narrator; visual_prompt is a rendering hint, not memory
MEMORY_FIELDS = ("narrative", "hp_current", "gold", "inventory", "options", "game_over")


@dataclass(frozen=True)
class ConversationEntry:
    role: str  # "user" or "assistant"
    content: str


@dataclass
class PlayableState:
    """What a returning player needs: narrator context plus the last screen"""

    adventure_id: str
    context: List[ConversationEntry] = field(default_factory=list)
    display: Optional[Dict[str, Any]] = None
    needs_initial_turn: bool = False
    next_turn_number: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "needs_initial_turn": self.needs_initial_turn,
            "next_turn_number": self.next_turn_number,
            "display": self.display,
        }


def memory_projection(turn: Dict[str, Any]) -> str:
    """Serialize a turn the way the narrator originally answered it."""
    return json.dumps(
        {
            "narrative": turn["narrative"],
            "hp_current": turn["hp_after"],
            "gold": turn["gold_after"],
            "inventory": list(turn["inventory_after"]),
            "options": list(turn["options"]),
            "game_over": bool(turn["game_over"]),
        },
        ensure_ascii=False,
    )


def display_projection(turn: Dict[str, Any]) -> Dict[str, Any]:
    """A turn as the UI shows it, including the rendering-only fields."""
    return {
        "turn_number": turn["turn_number"],
        "player_action": turn["player_action"],
        "dice_roll": turn["dice_roll"],
        "narrative": turn["narrative"],
        "visual_prompt": turn["visual_prompt"],
        "hp": turn["hp_after"],
        "gold": turn["gold_after"],
        "inventory": list(turn["inventory_after"]),
        "options": list(turn["options"]),
        "game_over": bool(turn["game_over"]),
        "created_at": turn["created_at"],
    }


def reconstruct(adventure: Dict[str, Any], turns: List[Dict[str, Any]]) -> PlayableState:
    """
    Replay `turns` into narrator context and the latest display.

    Args:
        adventure: The adventure the turns belong to
        turns: Its turn records in ascending turn order

    Raises:
        HistoryCorrupted: If turns are not exactly 1..turn_count
    """
    numbers = [t["turn_number"] for t in turns]
    expected = list(range(1, adventure["turn_count"] + 1))
    if numbers != expected:
        logger.error(
            f"Adventure {adventure['id']} has turns {numbers} but turn_count "
            f"{adventure['turn_count']}",
            extra={"component": "TURN", "adventure_id": adventure["id"]},
        )
        raise HistoryCorrupted(
            "Stored history does not match the adventure's turn count",
            adventure_id=adventure["id"],
        )

    state = PlayableState(
        adventure_id=adventure["id"], next_turn_number=len(turns) + 1
    )
    if not turns:
        state.needs_initial_turn = True
        return state

    for turn in turns:
        state.context.append(ConversationEntry("user", turn["player_action"]))
        state.context.append(ConversationEntry("assistant", memory_projection(turn)))

    last = turns[-1]
    state.display = {
        "narrative": last["narrative"],
        "options": list(last["options"]),
        "last_action": last["player_action"],
    }
    return state
