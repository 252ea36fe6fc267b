"""
Database schema definitions using SQLAlchemy.

This module defines the tables for users, adventures, per-turn history and
anonymous rate-limit counters. All data is stored in a single SQLite database
file for easy backup and portability.
"""

# mypy: ignore-errors

import uuid
from datetime import date, datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()  # type: ignore

ADVENTURE_STATUSES = ("active", "completed", "abandoned")
ENDING_TYPES = ("victory", "death", "limit_reached")


def _new_id() -> str:
    return str(uuid.uuid4())


class User(Base):
    """
    User table, upserted from the external login callback.

    Attributes:
        id: Opaque identifier issued by the auth provider
        email: Optional email address
        first_name: Optional given name
        last_name: Optional family name
        profile_image_url: Optional avatar URL
        is_premium: Whether the user has the premium tier
        created_at: Timestamp of first login
        updated_at: Timestamp of the last upsert
    """

    __tablename__ = "users"

    id = Column(String, primary_key=True)
    email = Column(String, nullable=True)
    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)
    profile_image_url = Column(String, nullable=True)
    is_premium = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )


class Adventure(Base):
    """
    Adventure table, one row per playthrough.

    Attributes:
        id: Unique adventure identifier (UUID)
        owner_id: User id, or ``anon:<ip>`` for anonymous play
        anonymous: Whether the owner is an anonymous IP identity
        character_*: Character identity chosen at creation
        theme_seeds: Keywords or custom theme used to seed the campaign
        campaign_title: Title copied out of campaign_data for listings
        campaign_data: Acts, endings and backstories as JSON (immutable)
        current_hp / gold / inventory: State after the latest turn
        starting_hp / starting_gold / starting_inventory: Values restored on restart
        turn_count: Number of applied turns
        max_turns: Turn cap, -1 for unlimited
        status: active, completed or abandoned
        ending_type: victory, death or limit_reached once completed
        last_image: Base64 scene image for the latest turn
        epilogue: Generated epilogue once completed (decorative)
    """

    __tablename__ = "adventures"

    id = Column(String, primary_key=True, default=_new_id)
    owner_id = Column(String, nullable=False)
    anonymous = Column(Boolean, nullable=False, default=False)

    character_name = Column(Text, nullable=False)
    character_race = Column(Text, nullable=False)
    character_class = Column(Text, nullable=False)
    character_gender = Column(Text, nullable=False)
    character_description = Column(Text, nullable=True)

    theme_seeds = Column(Text, nullable=True)
    campaign_title = Column(Text, nullable=True)
    campaign_data = Column(JSON, nullable=True)

    current_hp = Column(Integer, nullable=False)
    gold = Column(Integer, nullable=False, default=10)
    inventory = Column(JSON, nullable=False, default=list)
    starting_hp = Column(Integer, nullable=False)
    starting_gold = Column(Integer, nullable=False, default=10)
    starting_inventory = Column(JSON, nullable=False, default=list)

    turn_count = Column(Integer, nullable=False, default=0)
    max_turns = Column(Integer, nullable=False, default=-1)

    status = Column(String, nullable=False, default="active")
    ending_type = Column(String, nullable=True)

    last_image = Column(Text, nullable=True)
    last_image_turn = Column(Integer, nullable=True)
    epilogue = Column(JSON, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )
    last_played_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    turns = relationship(
        "AdventureTurn",
        back_populates="adventure",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="AdventureTurn.turn_number",
    )

    __table_args__ = (
        Index("idx_adventures_owner_id", "owner_id"),
        Index("idx_adventures_status", "status"),
        Index("idx_adventures_last_played", "last_played_at"),
    )


class AdventureTurn(Base):
    """
    One immutable turn of an adventure.

    Attributes:
        id: Unique turn identifier (UUID)
        adventure_id: Owning adventure
        turn_number: 1-based position, unique within the adventure
        player_action: What the player did (or the opening instruction)
        dice_roll: d20 result for this turn, if rolled
        narrative: Narrator text
        visual_prompt: Scene description for the image renderer
        hp_after / gold_after / inventory_after: State snapshot after the turn
        options: Choices offered for the next turn
        game_over: Whether the narrator ended the story on this turn
        created_at: Timestamp when the turn was recorded
    """

    __tablename__ = "adventure_turns"

    id = Column(String, primary_key=True, default=_new_id)
    adventure_id = Column(
        String, ForeignKey("adventures.id", ondelete="CASCADE"), nullable=False
    )
    turn_number = Column(Integer, nullable=False)

    player_action = Column(Text, nullable=False)
    dice_roll = Column(Integer, nullable=True)

    narrative = Column(Text, nullable=False)
    visual_prompt = Column(Text, nullable=True)

    hp_after = Column(Integer, nullable=False)
    gold_after = Column(Integer, nullable=False)
    inventory_after = Column(JSON, nullable=False, default=list)
    options = Column(JSON, nullable=False, default=list)
    game_over = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    adventure = relationship("Adventure", back_populates="turns")

    __table_args__ = (
        UniqueConstraint("adventure_id", "turn_number", name="uq_turns_number"),
        Index("idx_turns_adventure_id", "adventure_id"),
    )


class IpRateLimit(Base):
    """
    Daily game-start counter for one anonymous IP address.

    Attributes:
        ip_address: Client IP (unique)
        games_started_today: Adventures started on last_reset_date
        last_reset_date: Calendar day the counter refers to
    """

    __tablename__ = "ip_rate_limits"

    id = Column(String, primary_key=True, default=_new_id)
    ip_address = Column(String, nullable=False, unique=True)
    games_started_today = Column(Integer, nullable=False, default=0)
    last_reset_date = Column(Date, nullable=False, default=date.today)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )
