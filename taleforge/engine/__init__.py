"""
Core engine components for TaleForge
"""

from .architect import CampaignArchitect
from .lifecycle import AdventureLifecycle
from .narrator import GeneratorRequest, Narrator
from .orchestrator import TurnOrchestrator, TurnOutcome
from .rate_limiter import RateLimiter
from .reconstructor import PlayableState, reconstruct
from .scene_renderer import SceneRenderer

__all__ = [
    "AdventureLifecycle",
    "CampaignArchitect",
    "GeneratorRequest",
    "Narrator",
    "PlayableState",
    "RateLimiter",
    "SceneRenderer",
    "TurnOrchestrator",
    "TurnOutcome",
    "reconstruct",
]
