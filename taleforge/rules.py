"""
Character rules: class kits, racial traits and skill bonuses.

These tables seed a new adventure's starting state and give the narrator the
modifiers to apply when the player rolls a d20.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

STARTING_GOLD = 10
DICE_SIDES = 20
DICE_RANGE: Tuple[int, int] = (1, DICE_SIDES)

SKILL_CATEGORIES: Dict[str, List[str]] = {
    "combat": ["melee attacks", "blocking", "parrying", "intimidation", "wrestling", "weapon techniques"],
    "stealth": ["sneaking", "hiding", "lockpicking", "pickpocketing", "deception", "disguise", "sleight of hand"],
    "arcane": ["spellcasting", "magical knowledge", "enchanting", "dispelling", "arcane rituals", "reading magical texts"],
    "divine": ["healing", "blessing", "banishing undead", "holy rituals", "sensing evil", "prayer"],
    "nature": ["animal handling", "tracking", "herbalism", "weather sense", "shapeshifting", "plant lore"],
    "social": ["persuasion", "performance", "inspiration", "charm", "negotiation", "storytelling"],
    "survival": ["tracking", "foraging", "navigation", "hunting", "trap setting", "wilderness knowledge"],
}


@dataclass
class CharacterClass:
    name: str
    hp: int
    items: List[str]
    modifier: int
    modifier_type: str
    secondary_type: Optional[str] = None
    secondary_mod: Optional[int] = None


@dataclass
class Race:
    name: str
    trait: str
    bonus: str
    aliases: List[str] = field(default_factory=list)


CLASSES: Dict[str, CharacterClass] = {
    c.name: c
    for c in [
        CharacterClass("Warrior", 30, ["Greatsword", "Chainmail", "Potion"], 3, "combat"),
        CharacterClass("Paladin", 28, ["Longsword", "Shield", "Holy Symbol"], 2, "combat", "divine", 1),
        CharacterClass("Barbarian", 35, ["Greataxe", "Handaxe", "Javelins"], 3, "combat"),
        CharacterClass("Ranger", 26, ["Longbow", "Shortswords", "Cloak"], 2, "survival", "combat", 1),
        CharacterClass("Rogue", 20, ["Daggers", "Cloak", "Lockpicks"], 3, "stealth"),
        CharacterClass("Mage", 16, ["Staff", "Robes", "Tome"], 3, "arcane"),
        CharacterClass("Sorcerer", 18, ["Arcane Focus", "Dagger", "Robes"], 3, "arcane"),
        CharacterClass("Warlock", 20, ["Dagger", "Eldritch Eye", "Leather Armor"], 2, "arcane"),
        CharacterClass("Cleric", 24, ["Mace", "Shield", "Holy Symbol"], 2, "divine"),
        CharacterClass("Druid", 24, ["Scimitar", "Wooden Shield", "Holly"], 2, "nature"),
        CharacterClass("Bard", 22, ["Lute", "Rapier", "Dagger"], 3, "social"),
        CharacterClass("Monk", 24, ["Staff", "Darts", "Meditation Beads"], 2, "combat"),
    ]
}

RACES: Dict[str, Race] = {
    r.name: r
    for r in [
        Race("Human", "Versatile", "+1 to any skill check (flexible)"),
        Race("Elf", "Keen Senses", "+2 to perception, detecting hidden things"),
        Race("Dwarf", "Resilient", "+2 to resisting poison, endurance checks"),
        Race("Halfling", "Lucky", "Reroll natural 1s (treat as partial success)"),
        Race("Dragonborn", "Draconic Power", "+2 to intimidation, breath attacks"),
        Race("Gnome", "Clever", "+2 to magical knowledge, tinkering"),
        Race("Half-Orc", "Relentless", "+2 to strength checks, surviving lethal damage once"),
        Race("Tiefling", "Infernal Heritage", "+2 to fire resistance, dark bargains"),
        Race("Aasimar", "Celestial", "+2 to healing, sensing evil"),
    ]
}


def get_class(name: str) -> Optional[CharacterClass]:
    """Look up a class case-insensitively."""
    for key, klass in CLASSES.items():
        if key.lower() == (name or "").strip().lower():
            return klass
    return None


def get_race(name: str) -> Optional[Race]:
    for key, race in RACES.items():
        if key.lower() == (name or "").strip().lower():
            return race
    return None


def starting_kit(class_name: str) -> Tuple[int, int, List[str]]:
    """
    Starting hp, gold and inventory for a class.

    Unknown classes get a modest generic kit so custom classes remain playable.
    """
    klass = get_class(class_name)
    if klass is None:
        return 20, STARTING_GOLD, ["Dagger", "Cloak", "Rations"]
    return klass.hp, STARTING_GOLD, list(klass.items)


def character_bonuses(class_name: str, race_name: str) -> str:
    """Describe the class and race modifiers for the narrator."""
    klass = get_class(class_name)
    race = get_race(race_name)
    if klass is None or race is None:
        return f"Class: {class_name}, Race: {race_name}"

    lines = [
        f"**CLASS BONUSES ({klass.name}):**",
        f"+{klass.modifier} to: {', '.join(SKILL_CATEGORIES[klass.modifier_type])}",
    ]
    if klass.secondary_type and klass.secondary_mod:
        lines.append(
            f"+{klass.secondary_mod} to: {', '.join(SKILL_CATEGORIES[klass.secondary_type])}"
        )
    lines.append("")
    lines.append(f"**RACIAL BONUS ({race.name} - {race.trait}):**")
    lines.append(race.bonus)
    return "\n".join(lines)


def is_valid_roll(value: int) -> bool:
    return DICE_RANGE[0] <= value <= DICE_RANGE[1]
