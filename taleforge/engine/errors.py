"""
Domain errors raised by the adventure engine.

Every error carries the HTTP status and a stable machine-readable code so the
API layer can render it without inspecting the message. Storage failures are
deliberately not part of this hierarchy: they propagate as whatever the
database driver raised.
"""

from typing import Any, Dict, Optional


class TaleForgeError(Exception):
    """Base class for expected, caller-visible failures"""

    status_code = 500
    code = "internal"

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = context

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.message, "code": self.code}


class ValidationFailed(TaleForgeError):
    """Malformed create/update payload, rejected before any write"""

    status_code = 422
    code = "validation_failed"


class Unauthenticated(TaleForgeError):
    status_code = 401
    code = "unauthenticated"


class AdventureNotFound(TaleForgeError):
    status_code = 404
    code = "not_found"

    def __init__(self, adventure_id: str):
        super().__init__("Adventure not found", adventure_id=adventure_id)


class Forbidden(TaleForgeError):
    status_code = 403
    code = "forbidden"

    def __init__(self, message: str = "Access denied", **context: Any):
        super().__init__(message, **context)


class PolicyError(TaleForgeError):
    """An expected outcome the player can resolve (sign in, wait, start over)"""

    status_code = 409
    code = "policy"


class TurnLimitReached(PolicyError):
    status_code = 403
    code = "turn_limit_reached"

    def __init__(self, max_turns: int, **context: Any):
        super().__init__(
            f"Turn limit reached ({max_turns} turns). Log in for unlimited turns!",
            max_turns=max_turns,
            **context,
        )


class DailyLimitExceeded(PolicyError):
    status_code = 429
    code = "daily_limit_reached"

    def __init__(self, daily_limit: int):
        super().__init__(
            f"Daily limit reached. Free players can start {daily_limit} games per day. "
            "Log in for unlimited play!",
            daily_limit=daily_limit,
        )


class AdventureNotActive(PolicyError):
    status_code = 409
    code = "adventure_not_active"

    def __init__(self, adventure_id: str, status: str):
        super().__init__(
            f"Adventure is {status}; start over or begin a new adventure",
            adventure_id=adventure_id,
            status=status,
        )


class TurnConflict(PolicyError):
    """Another request applied a turn first; reload and try again"""

    status_code = 409
    code = "turn_conflict"

    def __init__(self, adventure_id: str, expected_turn_count: int):
        super().__init__(
            "This turn was already played from another request",
            adventure_id=adventure_id,
            expected_turn_count=expected_turn_count,
        )


class MissingCampaignData(TaleForgeError):
    status_code = 422
    code = "missing_campaign_data"

    def __init__(self, adventure_id: str):
        super().__init__(
            "Adventure has no usable campaign data", adventure_id=adventure_id
        )


class GeneratorUnavailable(TaleForgeError):
    """The narrator failed; the adventure was left untouched"""

    status_code = 503
    code = "generator_unavailable"

    def __init__(
        self,
        message: str,
        turn_number: Optional[int] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message, turn_number=turn_number)
        self.turn_number = turn_number
        self.cause = cause


class HistoryCorrupted(TaleForgeError):
    """Stored turns do not line up with the adventure's turn count"""

    status_code = 500
    code = "history_corrupted"


class SceneImageNotFound(TaleForgeError):
    status_code = 404
    code = "not_found"

    def __init__(self, adventure_id: str):
        super().__init__("No scene image for this adventure yet", adventure_id=adventure_id)
