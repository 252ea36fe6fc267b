"""
Character creation helpers.

Class and race tables plus generated names, looks and campaigns. Nothing here
is stored; the client sends the chosen values back when creating an adventure.
"""

from fastapi import APIRouter, Depends

from taleforge import rules
from taleforge.api.dependencies import get_architect
from taleforge.engine.architect import CampaignArchitect
from taleforge.schemas.adventure import CampaignRequest, CharacterSeed

router = APIRouter()


@router.get("/options")
async def character_options():
    """Playable classes with their starting kits, and races with their traits."""
    return {
        "classes": [
            {
                "name": c.name,
                "hp": c.hp,
                "items": list(c.items),
                "bonuses": rules.character_bonuses(c.name, "Human"),
            }
            for c in rules.CLASSES.values()
        ],
        "races": [
            {"name": r.name, "trait": r.trait, "bonus": r.bonus}
            for r in rules.RACES.values()
        ],
        "starting_gold": rules.STARTING_GOLD,
        "dice": {"min": rules.DICE_RANGE[0], "max": rules.DICE_RANGE[1]},
    }


@router.post("/name")
async def generate_name(
    seed: CharacterSeed, architect: CampaignArchitect = Depends(get_architect)
):
    name = await architect.generate_name(seed.gender, seed.race, seed.character_class)
    return {"name": name}


@router.post("/visuals")
async def generate_visuals(
    seed: CharacterSeed, architect: CampaignArchitect = Depends(get_architect)
):
    description = await architect.generate_visuals(
        seed.gender, seed.race, seed.character_class
    )
    return {"description": description}


@router.post("/campaign")
async def generate_campaign(
    request: CampaignRequest, architect: CampaignArchitect = Depends(get_architect)
):
    campaign = await architect.generate_campaign(
        request.name,
        request.gender,
        request.race,
        request.character_class,
        theme=request.theme,
    )
    return campaign.dict()
