"""
Daily game-start quota for anonymous players.

Each IP address may start `daily_limit` adventures per calendar day. The day is
the server's local date, so a player near midnight in another timezone sees the
reset at the server's midnight, not theirs. This is a known limitation.
"""

from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date
from typing import Callable, Iterator, Optional

from taleforge.db.manager import DatabaseManager
from taleforge.engine.errors import DailyLimitExceeded
from taleforge.utils.locks import KeyedLock
from taleforge.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class RateLimitDecision:
    allowed: bool
    games_used: int
    games_remaining: int
    message: Optional[str] = None


@dataclass
class GameStartReservation:
    """A counter write to commit together with the new adventure"""

    ip_address: str
    games_started_today: int
    last_reset_date: date

    def as_write(self) -> dict:
        return {
            "ip_address": self.ip_address,
            "games_started_today": self.games_started_today,
            "last_reset_date": self.last_reset_date,
        }


class RateLimiter:
    """Per-IP daily counter backed by the ip_rate_limits table"""

    def __init__(
        self,
        db: DatabaseManager,
        daily_limit: int,
        today_provider: Callable[[], date] = date.today,
        locks: Optional[KeyedLock] = None,
    ):
        self.db = db
        self.daily_limit = daily_limit
        self.today_provider = today_provider
        self.locks = locks or KeyedLock()

    def _usage(self, ip_address: str, today: date) -> int:
        """Games started today, treating a stale reset date as zero."""
        row = self.db.get_ip_rate_limit(ip_address)
        if row is None:
            return 0
        if today > row["last_reset_date"]:
            return 0
        return row["games_started_today"]

    def check(self, ip_address: str, today: Optional[date] = None) -> RateLimitDecision:
        """Decide whether `ip_address` may start another adventure today."""
        today = today or self.today_provider()
        used = self._usage(ip_address, today)
        remaining = max(0, self.daily_limit - used)

        if used >= self.daily_limit:
            return RateLimitDecision(
                allowed=False,
                games_used=used,
                games_remaining=0,
                message=DailyLimitExceeded(self.daily_limit).message,
            )
        return RateLimitDecision(allowed=True, games_used=used, games_remaining=remaining)

    def next_count(self, ip_address: str, today: date) -> int:
        return self._usage(ip_address, today) + 1

    def consume(self, ip_address: str, today: Optional[date] = None) -> int:
        """Record one game start and return the new count."""
        today = today or self.today_provider()
        with self.locks.hold(ip_address):
            count = self.next_count(ip_address, today)
            self.db.upsert_ip_rate_limit(ip_address, count, today)
        logger.info(
            f"IP {ip_address} started game {count}/{self.daily_limit} today",
            extra={"component": "RATE"},
        )
        return count

    @contextmanager
    def reserve(
        self, ip_address: str, today: Optional[date] = None
    ) -> Iterator[GameStartReservation]:
        """
        Check the quota and hold the IP's lock while the caller creates the adventure.

        The yielded reservation carries the counter write; the caller commits it
        in the same transaction as the adventure insert, so a failed create
        leaves the counter untouched.

        Raises:
            DailyLimitExceeded: If the IP has used up today's games
        """
        today = today or self.today_provider()
        with self.locks.hold(ip_address):
            decision = self.check(ip_address, today)
            if not decision.allowed:
                logger.info(
                    f"IP {ip_address} denied: {decision.games_used}/{self.daily_limit} games today",
                    extra={"component": "RATE"},
                )
                raise DailyLimitExceeded(self.daily_limit)

            yield GameStartReservation(
                ip_address=ip_address,
                games_started_today=decision.games_used + 1,
                last_reset_date=today,
            )

    def status(self, ip_address: str) -> dict:
        """Quota summary for the UI"""
        decision = self.check(ip_address)
        return {
            "unlimited": False,
            "games_remaining": decision.games_remaining,
            "total_allowed": self.daily_limit,
            "games_used": decision.games_used,
        }
