"""
Adventure lifecycle: the state machine every adventure mutation goes through.

    active --turn(game_over)--> completed (victory | death)
    active --turn(cap reached)--> completed (limit_reached)
    active --abandon--> abandoned
    any    --restart--> active (turns wiped, starting values restored)
    any    --delete--> gone

Ownership is checked here and nowhere else. Mutations of one adventure are
serialized with a per-adventure lock, and turn writes are additionally
conditional on the turn count the caller observed.
"""

from typing import Any, Dict, List, Optional

from taleforge import rules
from taleforge.db.manager import DatabaseManager, StaleWriteError
from taleforge.engine.errors import (
    AdventureNotActive,
    AdventureNotFound,
    Forbidden,
    TurnConflict,
    TurnLimitReached,
    ValidationFailed,
)
from taleforge.engine.rate_limiter import GameStartReservation
from taleforge.schemas.adventure import CampaignData, CharacterProfile
from taleforge.schemas.turn import TurnResponse
from taleforge.utils.locks import KeyedLock
from taleforge.utils.logger import get_logger

logger = get_logger(__name__)

UNLIMITED_TURNS = -1


def turn_limit_reached(adventure: Dict[str, Any]) -> bool:
    """Whether no further turn may be applied under the adventure's cap."""
    max_turns = adventure["max_turns"]
    return max_turns > 0 and adventure["turn_count"] >= max_turns


def ending_for(hp: int) -> str:
    return "death" if hp <= 0 else "victory"


class AdventureLifecycle:
    """Creates, advances and retires adventures while keeping their invariants"""

    def __init__(
        self,
        db: DatabaseManager,
        anonymous_max_turns: int = 5,
        registered_max_turns: int = UNLIMITED_TURNS,
        single_active_adventure: bool = True,
        free_history_limit: int = 5,
        locks: Optional[KeyedLock] = None,
    ):
        self.db = db
        self.anonymous_max_turns = anonymous_max_turns
        self.registered_max_turns = registered_max_turns
        self.single_active_adventure = single_active_adventure
        self.free_history_limit = free_history_limit
        self.locks = locks or KeyedLock()

    # ==================== Creation ====================

    def create(
        self,
        owner_id: str,
        character: CharacterProfile,
        campaign: CampaignData,
        anonymous: bool = False,
        theme_seeds: Optional[str] = None,
        starting_hp: Optional[int] = None,
        starting_gold: Optional[int] = None,
        starting_inventory: Optional[List[str]] = None,
        reservation: Optional[GameStartReservation] = None,
    ) -> Dict[str, Any]:
        """
        Start a new adventure at turn 0.

        Omitted starting values come from the class table. When a rate-limit
        reservation is given, its counter write commits with the insert.

        Raises:
            ValidationFailed: If the character or starting values are unusable
        """
        if not owner_id:
            raise ValidationFailed("Adventure owner is required")
        for field_name in ("name", "race", "character_class", "gender"):
            if not (getattr(character, field_name) or "").strip():
                raise ValidationFailed(f"Character {field_name} must not be empty")

        default_hp, default_gold, default_inventory = rules.starting_kit(
            character.character_class
        )
        hp = default_hp if starting_hp is None else starting_hp
        gold = default_gold if starting_gold is None else starting_gold
        inventory = (
            list(default_inventory)
            if starting_inventory is None
            else list(starting_inventory)
        )
        if hp <= 0:
            raise ValidationFailed("Starting HP must be positive")
        if gold < 0:
            raise ValidationFailed("Starting gold must not be negative")

        adventure = self.db.create_adventure(
            {
                "owner_id": owner_id,
                "anonymous": anonymous,
                "character_name": character.name,
                "character_race": character.race,
                "character_class": character.character_class,
                "character_gender": character.gender,
                "character_description": character.description,
                "theme_seeds": theme_seeds,
                "campaign_title": campaign.title,
                "campaign_data": campaign.dict(),
                "current_hp": hp,
                "gold": gold,
                "inventory": inventory,
                "starting_hp": hp,
                "starting_gold": gold,
                "starting_inventory": list(inventory),
                "turn_count": 0,
                "max_turns": (
                    self.anonymous_max_turns if anonymous else self.registered_max_turns
                ),
                "status": "active",
            },
            abandon_active=self.single_active_adventure,
            game_start=reservation.as_write() if reservation else None,
        )

        logger.info(
            f"Created adventure {adventure['id']} for {owner_id} "
            f"({character.race} {character.character_class}, max_turns={adventure['max_turns']})",
            extra={"component": "STORE", "adventure_id": adventure["id"]},
        )
        return adventure

    # ==================== Reads ====================

    def get_owned(self, adventure_id: str, requester_id: str) -> Dict[str, Any]:
        """
        Load an adventure on behalf of `requester_id`.

        Raises:
            AdventureNotFound: If there is no such adventure
            Forbidden: If someone else owns it
        """
        adventure = self.db.get_adventure(adventure_id)
        if adventure is None:
            raise AdventureNotFound(adventure_id)
        if adventure["owner_id"] != requester_id:
            logger.warning(
                f"Owner mismatch on adventure {adventure_id}",
                extra={"component": "STORE", "adventure_id": adventure_id},
            )
            raise Forbidden(adventure_id=adventure_id)
        return adventure

    def get_active(self, owner_id: str) -> Optional[Dict[str, Any]]:
        return self.db.get_active_adventure(owner_id)

    def list_owned(self, owner_id: str, premium: bool = False) -> List[Dict[str, Any]]:
        """Owner's adventures, most recent first; capped unless premium."""
        limit = None if premium else self.free_history_limit
        return self.db.list_adventures(owner_id, limit=limit)

    def get_turns(self, adventure_id: str) -> List[Dict[str, Any]]:
        return self.db.get_turns(adventure_id)

    # ==================== Turns ====================

    def check_can_advance(self, adventure: Dict[str, Any]) -> None:
        """
        Raise the policy error that blocks the next turn, if any.

        The cap is checked first so an adventure that ended by reaching it
        reports the cap rather than its status.
        """
        if turn_limit_reached(adventure):
            raise TurnLimitReached(adventure["max_turns"], adventure_id=adventure["id"])
        if adventure["status"] != "active":
            raise AdventureNotActive(adventure["id"], adventure["status"])

    def apply_turn_result(
        self,
        adventure: Dict[str, Any],
        result: TurnResponse,
        player_action: str,
        dice_roll: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Append one turn and replace the adventure's state with its snapshot.

        `adventure` is the snapshot the turn was generated from; if another
        request applied a turn in the meantime this one is rejected.

        Returns:
            Dictionary with "adventure" and "turn"

        Raises:
            AdventureNotFound: If the adventure was deleted meanwhile
            TurnConflict: If the turn count moved since `adventure` was read
            TurnLimitReached / AdventureNotActive: If the adventure may not advance
        """
        adventure_id = adventure["id"]
        expected = adventure["turn_count"]

        with self.locks.hold(adventure_id):
            current = self.db.get_adventure(adventure_id)
            if current is None:
                raise AdventureNotFound(adventure_id)
            if current["turn_count"] != expected:
                raise TurnConflict(adventure_id, expected)
            self.check_can_advance(current)

            turn_number = expected + 1
            gold = max(0, result.gold)
            updates: Dict[str, Any] = {
                "current_hp": result.hp_current,
                "gold": gold,
                "inventory": list(result.inventory),
                "turn_count": turn_number,
            }
            if result.game_over:
                updates["status"] = "completed"
                updates["ending_type"] = ending_for(result.hp_current)
            elif current["max_turns"] > 0 and turn_number >= current["max_turns"]:
                updates["status"] = "completed"
                updates["ending_type"] = "limit_reached"

            try:
                written = self.db.append_turn(
                    adventure_id,
                    expected,
                    updates,
                    {
                        "turn_number": turn_number,
                        "player_action": player_action,
                        "dice_roll": dice_roll,
                        "narrative": result.narrative,
                        "visual_prompt": result.visual_prompt,
                        "hp_after": result.hp_current,
                        "gold_after": gold,
                        "inventory_after": list(result.inventory),
                        "options": list(result.options),
                        "game_over": result.game_over,
                    },
                )
            except StaleWriteError as e:
                logger.warning(
                    f"Stale turn write on {adventure_id}: {e}",
                    extra={"component": "STORE", "adventure_id": adventure_id},
                )
                raise TurnConflict(adventure_id, expected)

        if written is None:
            raise AdventureNotFound(adventure_id)

        updated, turn = written
        logger.info(
            f"Applied turn {turn_number} to {adventure_id} "
            f"(hp={updated['current_hp']}, gold={updated['gold']}, status={updated['status']})",
            extra={"component": "STORE", "adventure_id": adventure_id},
        )
        return {"adventure": updated, "turn": turn}

    # ==================== Transitions ====================

    def abandon(self, adventure: Dict[str, Any]) -> Dict[str, Any]:
        """Mark an active adventure abandoned."""
        adventure_id = adventure["id"]
        with self.locks.hold(adventure_id):
            current = self.db.get_adventure(adventure_id)
            if current is None:
                raise AdventureNotFound(adventure_id)
            if current["status"] != "active":
                raise AdventureNotActive(adventure_id, current["status"])
            updated = self.db.update_adventure(
                adventure_id, {"status": "abandoned", "ending_type": None}
            )

        if updated is None:
            raise AdventureNotFound(adventure_id)
        logger.info(f"Abandoned adventure {adventure_id}", extra={"component": "STORE"})
        return updated

    def restart(self, adventure: Dict[str, Any]) -> Dict[str, Any]:
        """
        Retry the same campaign from turn 0.

        Turns are deleted and hp, gold and inventory go back to the values
        recorded at creation. Character and campaign are kept. The owner's
        other active adventures are abandoned when only one may be active.
        """
        adventure_id = adventure["id"]
        with self.locks.hold(adventure_id):
            updated = self.db.reset_adventure(
                adventure_id,
                {
                    "turn_count": 0,
                    "current_hp": adventure["starting_hp"],
                    "gold": adventure["starting_gold"],
                    "inventory": list(adventure["starting_inventory"]),
                    "status": "active",
                    "ending_type": None,
                    "last_image": None,
                    "last_image_turn": None,
                    "epilogue": None,
                },
                abandon_others=self.single_active_adventure,
            )
        if updated is None:
            raise AdventureNotFound(adventure_id)
        return updated

    def delete(self, adventure: Dict[str, Any]) -> None:
        with self.locks.hold(adventure["id"]):
            if not self.db.delete_adventure(adventure["id"]):
                raise AdventureNotFound(adventure["id"])

    def claim(
        self, adventure_id: str, anonymous_owner_id: str, user_id: str
    ) -> Dict[str, Any]:
        """
        Move an anonymous adventure to a registered user and lift its cap.

        An adventure that ended only because it hit the anonymous cap is
        reopened.

        Raises:
            Forbidden: If the adventure is not an anonymous one of the caller's
        """
        with self.locks.hold(adventure_id):
            adventure = self.get_owned(adventure_id, anonymous_owner_id)
            if not adventure["anonymous"]:
                raise Forbidden("Only anonymous adventures can be claimed")

            updates: Dict[str, Any] = {
                "owner_id": user_id,
                "anonymous": False,
                "max_turns": self.registered_max_turns,
            }
            reopened = adventure["ending_type"] == "limit_reached"
            if reopened:
                updates["status"] = "active"
                updates["ending_type"] = None
            becomes_active = reopened or adventure["status"] == "active"

            updated = self.db.transfer_adventure(
                adventure_id,
                updates,
                abandon_others=self.single_active_adventure and becomes_active,
            )
        if updated is None:
            raise AdventureNotFound(adventure_id)

        logger.info(
            f"User {user_id} claimed adventure {adventure_id} (reopened={reopened})",
            extra={"component": "STORE", "adventure_id": adventure_id},
        )
        return updated

    # ==================== Enrichment ====================

    def attach_scene_image(
        self, adventure_id: str, image_b64: str, turn_number: int
    ) -> bool:
        """
        Store a rendered scene if the adventure is still at `turn_number`.

        Returns:
            True if attached, False if the adventure is gone or has moved on
        """
        with self.locks.hold(adventure_id):
            current = self.db.get_adventure(adventure_id)
            if current is None or current["turn_count"] != turn_number:
                return False
            self.db.update_adventure(
                adventure_id,
                {"last_image": image_b64, "last_image_turn": turn_number},
                touch_last_played=False,
            )
        return True

    def record_epilogue(
        self, adventure_id: str, epilogue: Dict[str, Any], turn_number: int
    ) -> bool:
        """Store an epilogue if the adventure is still completed at `turn_number`."""
        with self.locks.hold(adventure_id):
            current = self.db.get_adventure(adventure_id)
            if (
                current is None
                or current["status"] != "completed"
                or current["turn_count"] != turn_number
            ):
                return False
            self.db.update_adventure(
                adventure_id, {"epilogue": epilogue}, touch_last_played=False
            )
        return True
