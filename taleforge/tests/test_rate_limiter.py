"""
Unit tests for the anonymous daily game quota.
"""

import threading
from datetime import timedelta

import pytest

from taleforge.engine.errors import DailyLimitExceeded


class TestRateLimiter:
    """Test check/consume/reserve against a real SQLite store"""

    def test_fresh_ip_is_allowed(self, rate_limiter):
        """An IP never seen before has the whole quota"""
        decision = rate_limiter.check("1.2.3.4")
        assert decision.allowed is True
        assert decision.games_used == 0
        assert decision.games_remaining == 3

    def test_three_games_then_denied(self, rate_limiter, db):
        """Three starts on one day succeed, the fourth is denied in place"""
        for expected in (1, 2, 3):
            assert rate_limiter.check("1.2.3.4").allowed
            assert rate_limiter.consume("1.2.3.4") == expected

        decision = rate_limiter.check("1.2.3.4")
        assert decision.allowed is False
        assert "3 games per day" in decision.message
        assert db.count_rate_limit_rows() == 1

    def test_day_rollover_resets_to_one(self, rate_limiter, clock, db):
        """A new calendar day starts the counter again at 1"""
        for _ in range(3):
            rate_limiter.consume("1.2.3.4")
        assert not rate_limiter.check("1.2.3.4").allowed

        clock["today"] = clock["today"] + timedelta(days=1)
        assert rate_limiter.check("1.2.3.4").allowed
        assert rate_limiter.consume("1.2.3.4") == 1

        row = db.get_ip_rate_limit("1.2.3.4")
        assert row["games_started_today"] == 1
        assert row["last_reset_date"] == clock["today"]

    def test_ips_are_independent(self, rate_limiter):
        for _ in range(3):
            rate_limiter.consume("1.2.3.4")
        assert rate_limiter.check("5.6.7.8").allowed

    def test_reserve_raises_when_exhausted(self, rate_limiter):
        """reserve() refuses once the quota is used"""
        for _ in range(3):
            rate_limiter.consume("1.2.3.4")

        with pytest.raises(DailyLimitExceeded) as exc_info:
            with rate_limiter.reserve("1.2.3.4"):
                pass
        assert exc_info.value.status_code == 429

    def test_reserve_yields_next_count(self, rate_limiter, clock):
        rate_limiter.consume("1.2.3.4")
        with rate_limiter.reserve("1.2.3.4") as reservation:
            assert reservation.games_started_today == 2
            assert reservation.last_reset_date == clock["today"]

    def test_reserve_does_not_write_by_itself(self, rate_limiter, db):
        """Only the adventure insert commits the counter"""
        with rate_limiter.reserve("1.2.3.4"):
            pass
        assert db.get_ip_rate_limit("1.2.3.4") is None

    def test_status_shape(self, rate_limiter):
        rate_limiter.consume("1.2.3.4")
        assert rate_limiter.status("1.2.3.4") == {
            "unlimited": False,
            "games_remaining": 2,
            "total_allowed": 3,
            "games_used": 1,
        }

    def test_stale_row_counts_as_zero(self, rate_limiter, db, clock):
        db.upsert_ip_rate_limit("1.2.3.4", 3, clock["today"] - timedelta(days=2))
        decision = rate_limiter.check("1.2.3.4")
        assert decision.allowed
        assert decision.games_used == 0


class TestAnonymousCreate:
    """The counter and the adventure commit together"""

    def test_three_adventures_then_denied(
        self, rate_limiter, lifecycle, warrior, campaign, db
    ):
        for _ in range(3):
            with rate_limiter.reserve("1.2.3.4") as reservation:
                lifecycle.create(
                    "anon:1.2.3.4",
                    warrior,
                    campaign,
                    anonymous=True,
                    reservation=reservation,
                )

        with pytest.raises(DailyLimitExceeded) as exc_info:
            with rate_limiter.reserve("1.2.3.4") as reservation:
                lifecycle.create(
                    "anon:1.2.3.4",
                    warrior,
                    campaign,
                    anonymous=True,
                    reservation=reservation,
                )

        assert "Log in for unlimited play" in exc_info.value.message
        assert db.count_rate_limit_rows() == 1
        assert db.get_ip_rate_limit("1.2.3.4")["games_started_today"] == 3
        assert len(db.list_adventures("anon:1.2.3.4")) == 3

    def test_failed_create_does_not_count(self, rate_limiter, lifecycle, warrior, campaign, db):
        """A rejected create leaves the counter untouched"""
        from taleforge.engine.errors import ValidationFailed

        with pytest.raises(ValidationFailed):
            with rate_limiter.reserve("1.2.3.4") as reservation:
                lifecycle.create(
                    "anon:1.2.3.4",
                    warrior,
                    campaign,
                    anonymous=True,
                    starting_hp=0,
                    reservation=reservation,
                )
        assert db.get_ip_rate_limit("1.2.3.4") is None

    def test_parallel_starts_stop_at_limit(self, rate_limiter, lifecycle, warrior, campaign, db):
        """Starts racing from one IP never exceed the daily quota"""
        barrier = threading.Barrier(6)
        outcomes = []

        def start():
            barrier.wait()
            try:
                with rate_limiter.reserve("1.2.3.4") as reservation:
                    lifecycle.create(
                        "anon:1.2.3.4",
                        warrior,
                        campaign,
                        anonymous=True,
                        reservation=reservation,
                    )
                outcomes.append("created")
            except DailyLimitExceeded:
                outcomes.append("denied")

        threads = [threading.Thread(target=start) for _ in range(6)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

        assert outcomes.count("created") == 3
        assert outcomes.count("denied") == 3
        assert len(db.list_adventures("anon:1.2.3.4")) == 3
        assert db.count_rate_limit_rows() == 1
        assert db.get_ip_rate_limit("1.2.3.4")["games_started_today"] == 3
