"""
Request and domain models for characters, campaigns and adventures
"""

from typing import List, Optional

from pydantic import BaseModel, Field, validator


class CharacterProfile(BaseModel):
    """Character identity chosen at creation"""

    name: str = Field(..., description="Character name")
    race: str = Field(..., description="Race, e.g. Human or Elf")
    character_class: str = Field(..., alias="class", description="Class, e.g. Warrior")
    gender: str = Field(..., description="Gender as chosen by the player")
    description: Optional[str] = Field(
        None, description="Free-text visual description"
    )

    @validator("name", "race", "character_class", "gender")
    def validate_not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError("must not be empty")
        return v.strip()

    class Config:
        populate_by_name = True


class CampaignData(BaseModel):
    """Immutable three-act story skeleton produced once per adventure"""

    title: str
    act1: str
    act2: str
    act3: str
    possible_endings: List[str] = Field(..., min_length=1)
    world_backstory: str = ""
    character_backstory: str = ""


class AdventureCreateRequest(BaseModel):
    """Payload for starting a new adventure"""

    character: CharacterProfile
    campaign: CampaignData
    theme_seeds: Optional[str] = Field(
        None, description="Keywords or custom theme used to seed the campaign"
    )
    starting_hp: Optional[int] = Field(None, description="Defaults from the class table")
    starting_gold: Optional[int] = Field(None, description="Defaults to the starting purse")
    starting_inventory: Optional[List[str]] = Field(
        None, description="Defaults to the class kit"
    )


class TurnRequest(BaseModel):
    """Payload for advancing an adventure by one turn"""

    action: Optional[str] = Field(
        None, description="What the player does; ignored on the opening turn"
    )
    dice_roll: Optional[int] = Field(None, description="d20 result, 1..20")


class CharacterSeed(BaseModel):
    """Inputs for the name and visual description helpers"""

    race: str
    character_class: str = Field(..., alias="class")
    gender: str

    class Config:
        populate_by_name = True


class CampaignRequest(BaseModel):
    """Inputs for the campaign architect"""

    name: str
    race: str
    character_class: str = Field(..., alias="class")
    gender: str
    theme: Optional[str] = Field(None, description="Custom theme or seed keywords")

    class Config:
        populate_by_name = True


class UserSync(BaseModel):
    """Profile pushed by the external login callback"""

    id: str = Field(..., min_length=1)
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_image_url: Optional[str] = None
    is_premium: Optional[bool] = None
