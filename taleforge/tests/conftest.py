"""
Shared fixtures: a throwaway database per test and a scripted narrator.
"""

import json
from datetime import date
from typing import Any, Dict, List, Optional, Union

import pytest
from langchain_core.messages import BaseMessage

from taleforge.db.manager import DatabaseManager
from taleforge.engine.lifecycle import AdventureLifecycle
from taleforge.engine.narrator import Narrator
from taleforge.engine.orchestrator import TurnOrchestrator
from taleforge.engine.rate_limiter import RateLimiter
from taleforge.providers.base import BaseProvider, ProviderResponse
from taleforge.schemas.adventure import CampaignData, CharacterProfile


class ScriptedProvider(BaseProvider):
    """Provider that replays queued answers and records what it was sent"""

    def __init__(self, answers: Optional[List[Union[Dict[str, Any], str, Exception]]] = None):
        super().__init__("http://scripted", "", "scripted")
        self.answers = list(answers or [])
        self.calls: List[List[BaseMessage]] = []
        self.schemas: List[Optional[Dict[str, Any]]] = []

    def queue(self, *answers: Union[Dict[str, Any], str, Exception]) -> None:
        self.answers.extend(answers)

    async def chat(self, messages, json_schema=None, **kwargs) -> ProviderResponse:
        self.calls.append(list(messages))
        self.schemas.append(json_schema)
        if not self.answers:
            raise RuntimeError("No scripted answer left")
        answer = self.answers.pop(0)
        if isinstance(answer, Exception):
            raise answer
        content = answer if isinstance(answer, str) else json.dumps(answer)
        return ProviderResponse(content=content, model=self.model_name)

    async def health_check(self) -> bool:
        return True


def turn_payload(
    hp: int,
    gold: int,
    inventory: Optional[List[str]] = None,
    game_over: bool = False,
    narrative: str = "You press on through the dark.",
) -> Dict[str, Any]:
    return {
        "narrative": narrative,
        "visual_prompt": "A torchlit stone corridor",
        "hp_current": hp,
        "gold": gold,
        "inventory": inventory if inventory is not None else ["Greatsword", "Chainmail", "Potion"],
        "options": [] if game_over else ["Fight", "Flee", "Parley"],
        "game_over": game_over,
    }


@pytest.fixture
def db(tmp_path):
    return DatabaseManager(str(tmp_path / "taleforge-test.db"))


@pytest.fixture
def warrior():
    return CharacterProfile(
        name="Brannoc",
        race="Human",
        character_class="Warrior",
        gender="Male",
        description="Broad-shouldered, scarred, grey eyes",
    )


@pytest.fixture
def campaign():
    return CampaignData(
        title="The Ashen Crown",
        act1="A plague of ash falls on the village of Hollowmere.",
        act2="The cure lies in the tomb of the king who caused it.",
        act3="The ash king wakes and demands a successor.",
        possible_endings=["Cure the land", "Take the crown", "Burn with it"],
        world_backstory="Hollowmere sits in the shadow of a dead volcano.",
        character_backstory="Brannoc left the legion after a massacre.",
    )


@pytest.fixture
def lifecycle(db):
    return AdventureLifecycle(
        db,
        anonymous_max_turns=5,
        registered_max_turns=-1,
        single_active_adventure=True,
        free_history_limit=5,
    )


@pytest.fixture
def provider():
    return ScriptedProvider()


@pytest.fixture
def orchestrator(lifecycle, provider):
    return TurnOrchestrator(lifecycle, Narrator(provider), timeout_seconds=5)


@pytest.fixture
def clock():
    """Mutable 'today' for the rate limiter"""
    return {"today": date(2025, 3, 14)}


@pytest.fixture
def rate_limiter(db, clock):
    return RateLimiter(db, daily_limit=3, today_provider=lambda: clock["today"])


@pytest.fixture
def adventure(lifecycle, warrior, campaign):
    return lifecycle.create("u1", warrior, campaign)
