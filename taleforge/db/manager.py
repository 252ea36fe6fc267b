"""
Database manager for TaleForge.

This module provides a high-level interface for database operations on users,
adventures, adventure turns and anonymous rate-limit counters, with automatic
connection management. It holds no game rules: callers decide what to write,
the manager only guarantees that each method is a single transaction.
"""

import os
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import create_engine, desc, event
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session as DBSession
from sqlalchemy.orm import sessionmaker

from taleforge.db.schema import Adventure, AdventureTurn, Base, IpRateLimit, User
from taleforge.utils.logger import get_logger

logger = get_logger(__name__)

# Columns callers may not overwrite through update_adventure()
_PROTECTED_ADVENTURE_FIELDS = {"id", "created_at", "turns"}


class StaleWriteError(Exception):
    """Raised when a conditional write finds the row changed underneath it"""


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _adventure_to_dict(adventure: Adventure) -> Dict[str, Any]:
    return {
        "id": adventure.id,
        "owner_id": adventure.owner_id,
        "anonymous": adventure.anonymous,
        "character_name": adventure.character_name,
        "character_race": adventure.character_race,
        "character_class": adventure.character_class,
        "character_gender": adventure.character_gender,
        "character_description": adventure.character_description,
        "theme_seeds": adventure.theme_seeds,
        "campaign_title": adventure.campaign_title,
        "campaign_data": adventure.campaign_data,
        "current_hp": adventure.current_hp,
        "gold": adventure.gold,
        "inventory": list(adventure.inventory or []),
        "starting_hp": adventure.starting_hp,
        "starting_gold": adventure.starting_gold,
        "starting_inventory": list(adventure.starting_inventory or []),
        "turn_count": adventure.turn_count,
        "max_turns": adventure.max_turns,
        "status": adventure.status,
        "ending_type": adventure.ending_type,
        "last_image": adventure.last_image,
        "last_image_turn": adventure.last_image_turn,
        "epilogue": adventure.epilogue,
        "created_at": _iso(adventure.created_at),
        "updated_at": _iso(adventure.updated_at),
        "last_played_at": _iso(adventure.last_played_at),
    }


def _adventure_summary(adventure: Adventure) -> Dict[str, Any]:
    return {
        "id": adventure.id,
        "character_name": adventure.character_name,
        "character_race": adventure.character_race,
        "character_class": adventure.character_class,
        "campaign_title": adventure.campaign_title,
        "current_hp": adventure.current_hp,
        "gold": adventure.gold,
        "turn_count": adventure.turn_count,
        "max_turns": adventure.max_turns,
        "status": adventure.status,
        "ending_type": adventure.ending_type,
        "created_at": _iso(adventure.created_at),
        "last_played_at": _iso(adventure.last_played_at),
    }


def _turn_to_dict(turn: AdventureTurn) -> Dict[str, Any]:
    return {
        "id": turn.id,
        "adventure_id": turn.adventure_id,
        "turn_number": turn.turn_number,
        "player_action": turn.player_action,
        "dice_roll": turn.dice_roll,
        "narrative": turn.narrative,
        "visual_prompt": turn.visual_prompt,
        "hp_after": turn.hp_after,
        "gold_after": turn.gold_after,
        "inventory_after": list(turn.inventory_after or []),
        "options": list(turn.options or []),
        "game_over": turn.game_over,
        "created_at": _iso(turn.created_at),
    }


def _user_to_dict(user: User) -> Dict[str, Any]:
    return {
        "id": user.id,
        "email": user.email,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "profile_image_url": user.profile_image_url,
        "is_premium": bool(user.is_premium),
        "created_at": _iso(user.created_at),
        "updated_at": _iso(user.updated_at),
    }


def _rate_limit_to_dict(rate_limit: IpRateLimit) -> Dict[str, Any]:
    return {
        "ip_address": rate_limit.ip_address,
        "games_started_today": rate_limit.games_started_today,
        "last_reset_date": rate_limit.last_reset_date,
        "updated_at": _iso(rate_limit.updated_at),
    }


class DatabaseManager:
    """
    Manages database operations for users, adventures and rate limits.

    Attributes:
        db_path: Path to the SQLite database file
        engine: SQLAlchemy engine for database connections
        SessionLocal: Factory for creating database sessions
    """

    def __init__(self, db_path: str = "data/taleforge.db"):
        """
        Initialize the database manager.

        Args:
            db_path: Path to SQLite database file (created if doesn't exist)
        """
        self.db_path = db_path

        directory = os.path.dirname(db_path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        self.engine = create_engine(
            f"sqlite:///{db_path}",
            echo=False,  # Set to True for SQL debugging
            connect_args={"check_same_thread": False},  # Allow multi-threading
        )
        event.listen(self.engine, "connect", self._enable_foreign_keys)
        Base.metadata.create_all(self.engine)
        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)

        logger.info(f"Database initialized at {db_path}")

    @staticmethod
    def _enable_foreign_keys(dbapi_connection, connection_record) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    # ==================== User Operations ====================

    def upsert_user(self, user_dict: Dict[str, Any]) -> Dict[str, Any]:
        """
        Insert a user or refresh an existing one's profile fields.

        Args:
            user_dict: Dictionary with "id" and any of email, first_name,
                last_name, profile_image_url, is_premium

        Returns:
            Dictionary with the stored user
        """
        db: DBSession = self.SessionLocal()
        try:
            user = db.query(User).filter(User.id == user_dict["id"]).first()
            if user is None:
                user = User(id=user_dict["id"], created_at=datetime.utcnow())
                db.add(user)

            for key in ("email", "first_name", "last_name", "profile_image_url"):
                if key in user_dict:
                    setattr(user, key, user_dict[key])
            if "is_premium" in user_dict and user_dict["is_premium"] is not None:
                user.is_premium = bool(user_dict["is_premium"])
            user.updated_at = datetime.utcnow()  # type: ignore

            db.commit()
            result = _user_to_dict(user)
            logger.debug(f"Upserted user {result['id']}")
            return result
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to upsert user: {e}")
            raise
        finally:
            db.close()

    def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        """
        Retrieve a user by ID.

        Returns:
            Dictionary containing user data, or None if not found
        """
        db: DBSession = self.SessionLocal()
        try:
            user = db.query(User).filter(User.id == user_id).first()
            return _user_to_dict(user) if user else None
        finally:
            db.close()

    # ==================== Adventure Operations ====================

    def create_adventure(
        self,
        adventure_dict: Dict[str, Any],
        abandon_active: bool = False,
        game_start: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Insert a new adventure.

        Args:
            adventure_dict: Column values for the new adventure
            abandon_active: Mark the owner's other active adventures abandoned
                in the same transaction
            game_start: Optional rate-limit counter write to commit together
                with the adventure, with keys ip_address, games_started_today
                and last_reset_date

        Returns:
            Dictionary with the stored adventure
        """
        db: DBSession = self.SessionLocal()
        try:
            now = datetime.utcnow()

            if abandon_active:
                abandoned = (
                    db.query(Adventure)
                    .filter(
                        Adventure.owner_id == adventure_dict["owner_id"],
                        Adventure.status == "active",
                    )
                    .update(
                        {"status": "abandoned", "updated_at": now},
                        synchronize_session=False,
                    )
                )
                if abandoned:
                    logger.info(
                        f"Abandoned {abandoned} active adventure(s) for {adventure_dict['owner_id']}"
                    )

            if game_start:
                self._write_rate_limit(
                    db,
                    game_start["ip_address"],
                    game_start["games_started_today"],
                    game_start["last_reset_date"],
                )

            adventure = Adventure(
                **adventure_dict,
                created_at=now,
                updated_at=now,
                last_played_at=now,
            )
            db.add(adventure)
            db.commit()

            result = _adventure_to_dict(adventure)
            logger.debug(f"Created adventure {result['id']} for {result['owner_id']}")
            return result
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to create adventure: {e}")
            raise
        finally:
            db.close()

    def get_adventure(self, adventure_id: str) -> Optional[Dict[str, Any]]:
        """
        Retrieve an adventure by ID.

        Returns:
            Dictionary containing complete adventure data, or None if not found
        """
        db: DBSession = self.SessionLocal()
        try:
            adventure = db.query(Adventure).filter(Adventure.id == adventure_id).first()
            return _adventure_to_dict(adventure) if adventure else None
        finally:
            db.close()

    def get_active_adventure(self, owner_id: str) -> Optional[Dict[str, Any]]:
        """
        Retrieve the owner's most recently played active adventure.

        Returns:
            Dictionary containing adventure data, or None if there is none
        """
        db: DBSession = self.SessionLocal()
        try:
            adventure = (
                db.query(Adventure)
                .filter(Adventure.owner_id == owner_id, Adventure.status == "active")
                .order_by(desc(Adventure.last_played_at))
                .first()
            )
            return _adventure_to_dict(adventure) if adventure else None
        finally:
            db.close()

    def list_adventures(
        self, owner_id: str, limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """
        List an owner's adventures.

        Args:
            owner_id: Owner identifier
            limit: Maximum number of adventures to return (None for all)

        Returns:
            List of adventure summaries, most recently played first
        """
        db: DBSession = self.SessionLocal()
        try:
            query = (
                db.query(Adventure)
                .filter(Adventure.owner_id == owner_id)
                .order_by(desc(Adventure.last_played_at))
            )
            if limit:
                query = query.limit(limit)
            return [_adventure_summary(a) for a in query.all()]
        finally:
            db.close()

    def update_adventure(
        self,
        adventure_id: str,
        updates: Dict[str, Any],
        touch_last_played: bool = True,
    ) -> Optional[Dict[str, Any]]:
        """
        Update adventure fields.

        Args:
            adventure_id: The adventure's unique identifier
            updates: Dictionary of fields to update
            touch_last_played: Also refresh last_played_at

        Returns:
            The updated adventure, or None if not found
        """
        db: DBSession = self.SessionLocal()
        try:
            adventure = (
                db.query(Adventure)
                .filter(Adventure.id == adventure_id)
                .with_for_update()
                .first()
            )
            if adventure is None:
                return None

            for key, value in updates.items():
                if hasattr(adventure, key) and key not in _PROTECTED_ADVENTURE_FIELDS:
                    setattr(adventure, key, value)
            now = datetime.utcnow()
            adventure.updated_at = now  # type: ignore
            if touch_last_played:
                adventure.last_played_at = now  # type: ignore
            db.commit()

            logger.debug(f"Updated adventure {adventure_id}: {list(updates.keys())}")
            return _adventure_to_dict(adventure)
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to update adventure: {e}")
            raise
        finally:
            db.close()

    def transfer_adventure(
        self, adventure_id: str, updates: Dict[str, Any], abandon_others: bool = False
    ) -> Optional[Dict[str, Any]]:
        """
        Change an adventure's owner.

        Args:
            adventure_id: The adventure's unique identifier
            updates: Fields to set, including the new owner_id
            abandon_others: Mark the new owner's other active adventures
                abandoned in the same transaction

        Returns:
            The updated adventure, or None if not found
        """
        db: DBSession = self.SessionLocal()
        try:
            adventure = (
                db.query(Adventure)
                .filter(Adventure.id == adventure_id)
                .with_for_update()
                .first()
            )
            if adventure is None:
                return None

            now = datetime.utcnow()
            if abandon_others:
                db.query(Adventure).filter(
                    Adventure.owner_id == updates["owner_id"],
                    Adventure.status == "active",
                    Adventure.id != adventure_id,
                ).update(
                    {"status": "abandoned", "updated_at": now},
                    synchronize_session=False,
                )

            for key, value in updates.items():
                if hasattr(adventure, key) and key not in _PROTECTED_ADVENTURE_FIELDS:
                    setattr(adventure, key, value)
            adventure.updated_at = now  # type: ignore
            db.commit()

            logger.info(f"Transferred adventure {adventure_id} to {adventure.owner_id}")
            return _adventure_to_dict(adventure)
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to transfer adventure: {e}")
            raise
        finally:
            db.close()

    def append_turn(
        self,
        adventure_id: str,
        expected_turn_count: int,
        adventure_updates: Dict[str, Any],
        turn_dict: Dict[str, Any],
    ) -> Optional[Tuple[Dict[str, Any], Dict[str, Any]]]:
        """
        Record a turn and the adventure state it produced in one transaction.

        The write only happens if the adventure is still active with
        `expected_turn_count` turns; otherwise another writer got there first.

        Args:
            adventure_id: The adventure's unique identifier
            expected_turn_count: turn_count observed before the turn was generated
            adventure_updates: Fields to set on the adventure row
            turn_dict: Column values for the new turn record

        Returns:
            Tuple of (adventure, turn) dictionaries, or None if the adventure
            no longer exists

        Raises:
            StaleWriteError: If turn_count moved, the adventure left the
                active state or the turn number is taken
        """
        db: DBSession = self.SessionLocal()
        try:
            adventure = (
                db.query(Adventure)
                .filter(Adventure.id == adventure_id)
                .with_for_update()
                .first()
            )
            if adventure is None:
                return None
            if adventure.turn_count != expected_turn_count:
                raise StaleWriteError(
                    f"Adventure {adventure_id} is at turn {adventure.turn_count}, "
                    f"expected {expected_turn_count}"
                )
            if adventure.status != "active":
                raise StaleWriteError(
                    f"Adventure {adventure_id} is {adventure.status}, not active"
                )

            now = datetime.utcnow()
            turn = AdventureTurn(adventure_id=adventure_id, created_at=now, **turn_dict)
            db.add(turn)

            for key, value in adventure_updates.items():
                if hasattr(adventure, key) and key not in _PROTECTED_ADVENTURE_FIELDS:
                    setattr(adventure, key, value)
            adventure.updated_at = now  # type: ignore
            adventure.last_played_at = now  # type: ignore

            try:
                db.commit()
            except IntegrityError as e:
                raise StaleWriteError(
                    f"Turn {turn_dict.get('turn_number')} already recorded for {adventure_id}"
                ) from e

            logger.debug(
                f"Recorded turn {turn.turn_number} for adventure {adventure_id}"
            )
            return _adventure_to_dict(adventure), _turn_to_dict(turn)
        except StaleWriteError:
            db.rollback()
            raise
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to record turn: {e}")
            raise
        finally:
            db.close()

    def reset_adventure(
        self, adventure_id: str, updates: Dict[str, Any], abandon_others: bool = False
    ) -> Optional[Dict[str, Any]]:
        """
        Delete every turn of an adventure and apply `updates` atomically.

        Args:
            adventure_id: The adventure's unique identifier
            updates: Fields to set on the adventure row
            abandon_others: Mark the owner's other active adventures abandoned
                in the same transaction

        Returns:
            The updated adventure, or None if not found
        """
        db: DBSession = self.SessionLocal()
        try:
            adventure = (
                db.query(Adventure)
                .filter(Adventure.id == adventure_id)
                .with_for_update()
                .first()
            )
            if adventure is None:
                return None

            deleted = (
                db.query(AdventureTurn)
                .filter(AdventureTurn.adventure_id == adventure_id)
                .delete(synchronize_session=False)
            )
            now = datetime.utcnow()
            if abandon_others:
                db.query(Adventure).filter(
                    Adventure.owner_id == adventure.owner_id,
                    Adventure.status == "active",
                    Adventure.id != adventure_id,
                ).update(
                    {"status": "abandoned", "updated_at": now},
                    synchronize_session=False,
                )

            for key, value in updates.items():
                if hasattr(adventure, key) and key not in _PROTECTED_ADVENTURE_FIELDS:
                    setattr(adventure, key, value)
            adventure.updated_at = now  # type: ignore
            adventure.last_played_at = now  # type: ignore
            db.commit()

            logger.info(f"Reset adventure {adventure_id} ({deleted} turns deleted)")
            return _adventure_to_dict(adventure)
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to reset adventure: {e}")
            raise
        finally:
            db.close()

    def delete_adventure(self, adventure_id: str) -> bool:
        """
        Delete an adventure and, by cascade, its turns.

        Returns:
            True if deleted successfully, False if not found
        """
        db: DBSession = self.SessionLocal()
        try:
            adventure = db.query(Adventure).filter(Adventure.id == adventure_id).first()
            if adventure:
                db.delete(adventure)
                db.commit()
                logger.info(f"Deleted adventure {adventure_id}")
                return True
            return False
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to delete adventure: {e}")
            raise
        finally:
            db.close()

    # ==================== Turn Operations ====================

    def get_turns(
        self, adventure_id: str, limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """
        Retrieve an adventure's turns in ascending turn order.

        Args:
            adventure_id: The adventure's unique identifier
            limit: Only return the last N turns (still ascending)

        Returns:
            List of turn dictionaries
        """
        db: DBSession = self.SessionLocal()
        try:
            query = db.query(AdventureTurn).filter(
                AdventureTurn.adventure_id == adventure_id
            )
            if limit:
                turns = (
                    query.order_by(desc(AdventureTurn.turn_number)).limit(limit).all()
                )
                turns.reverse()
            else:
                turns = query.order_by(AdventureTurn.turn_number).all()
            return [_turn_to_dict(t) for t in turns]
        finally:
            db.close()

    def get_latest_turn(self, adventure_id: str) -> Optional[Dict[str, Any]]:
        """Retrieve the highest-numbered turn of an adventure, if any."""
        turns = self.get_turns(adventure_id, limit=1)
        return turns[0] if turns else None

    def count_turns(self, adventure_id: str) -> int:
        db: DBSession = self.SessionLocal()
        try:
            return (
                db.query(AdventureTurn)
                .filter(AdventureTurn.adventure_id == adventure_id)
                .count()
            )
        finally:
            db.close()

    # ==================== Rate Limit Operations ====================

    def get_ip_rate_limit(self, ip_address: str) -> Optional[Dict[str, Any]]:
        """
        Retrieve the rate-limit counter for an IP address.

        Returns:
            Dictionary with games_started_today and last_reset_date, or None
        """
        db: DBSession = self.SessionLocal()
        try:
            rate_limit = (
                db.query(IpRateLimit)
                .filter(IpRateLimit.ip_address == ip_address)
                .first()
            )
            return _rate_limit_to_dict(rate_limit) if rate_limit else None
        finally:
            db.close()

    def upsert_ip_rate_limit(
        self, ip_address: str, games_started: int, reset_date: date
    ) -> Dict[str, Any]:
        """
        Store the counter for an IP address, creating the row on first use.

        Returns:
            Dictionary with the stored counter
        """
        db: DBSession = self.SessionLocal()
        try:
            rate_limit = self._write_rate_limit(db, ip_address, games_started, reset_date)
            db.commit()
            return _rate_limit_to_dict(rate_limit)
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to update rate limit for {ip_address}: {e}")
            raise
        finally:
            db.close()

    def count_rate_limit_rows(self) -> int:
        db: DBSession = self.SessionLocal()
        try:
            return db.query(IpRateLimit).count()
        finally:
            db.close()

    @staticmethod
    def _write_rate_limit(
        db: DBSession, ip_address: str, games_started: int, reset_date: date
    ) -> IpRateLimit:
        rate_limit = (
            db.query(IpRateLimit)
            .filter(IpRateLimit.ip_address == ip_address)
            .with_for_update()
            .first()
        )
        now = datetime.utcnow()
        if rate_limit is None:
            rate_limit = IpRateLimit(
                ip_address=ip_address,
                games_started_today=games_started,
                last_reset_date=reset_date,
                created_at=now,
                updated_at=now,
            )
            db.add(rate_limit)
        else:
            rate_limit.games_started_today = games_started  # type: ignore
            rate_limit.last_reset_date = reset_date  # type: ignore
            rate_limit.updated_at = now  # type: ignore
        db.flush()
        return rate_limit
