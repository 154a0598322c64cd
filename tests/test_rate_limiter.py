"""
일일 요청 제한 / 시간당 전체 제한 테스트
"""
import asyncio
from datetime import datetime, timedelta, timezone
import pytest

from models.usage_models import UserSubscription
from services.errors import StorageError
from services.storage import InMemoryStorage
from services.subscription_service import SubscriptionService
from utils.rate_limiter import RateLimiter, next_utc_midnight


class FailingReadStorage(InMemoryStorage):
    async def get_rate_limit(self, identifier, date):
        raise StorageError("connection refused")

    async def get_global_requests(self, hour):
        raise StorageError("connection refused")


class FailingWriteStorage(InMemoryStorage):
    async def update_rate_limit(self, identifier, date, requests_count):
        raise StorageError("write rejected")


def make_limiter(storage, settings, clock):
    return RateLimiter(storage, SubscriptionService(storage, settings, clock), settings, clock)


def enforce_many(limiter, identifier, is_guest, times):
    async def run():
        return [await limiter.enforce_rate_limit(identifier, is_guest) for _ in range(times)]
    return asyncio.run(run())


@pytest.mark.unit
class TestDailyQuota:
    """사용자별 일일 제한"""

    def test_guest_limit_sequence(self, storage, settings, clock):
        limiter = make_limiter(storage, settings, clock)
        results = enforce_many(limiter, "guest-1", True, 4)

        assert [r.allowed for r in results] == [True, True, True, False]
        assert [r.remaining_requests for r in results] == [2, 1, 0, 0]
        assert results[-1].reset_time == datetime(2025, 6, 16, tzinfo=timezone.utc)

    def test_identities_counted_separately(self, storage, settings, clock):
        limiter = make_limiter(storage, settings, clock)
        enforce_many(limiter, "guest-1", True, 3)

        result = asyncio.run(limiter.enforce_rate_limit("guest-2", True))
        assert result.allowed
        assert result.remaining_requests == 2

    def test_free_user_limit(self, storage, settings, clock):
        limiter = make_limiter(storage, settings, clock)
        results = enforce_many(limiter, "user-free", False, 11)

        assert results[0].remaining_requests == 9
        assert results[9].allowed
        assert not results[10].allowed

    def test_premium_user_limit(self, storage, settings, clock):
        storage.set_subscription(UserSubscription(user_id="user-premium", tier="premium"))
        limiter = make_limiter(storage, settings, clock)

        result = asyncio.run(limiter.enforce_rate_limit("user-premium", False))
        assert result.remaining_requests == 99

    def test_expired_premium_gets_free_limit(self, storage, settings, clock, fixed_now):
        storage.set_subscription(UserSubscription(
            user_id="user-lapsed", tier="premium", expires_at=fixed_now - timedelta(days=1)
        ))
        limiter = make_limiter(storage, settings, clock)

        result = asyncio.run(limiter.enforce_rate_limit("user-lapsed", False))
        assert result.remaining_requests == 9

    def test_new_day_resets_counter(self, storage, settings, fixed_now):
        now = {"value": fixed_now}
        limiter = make_limiter(storage, settings, lambda: now["value"])
        enforce_many(limiter, "guest-1", True, 3)

        now["value"] = fixed_now + timedelta(days=1)
        result = asyncio.run(limiter.enforce_rate_limit("guest-1", True))
        assert result.allowed
        assert result.remaining_requests == 2

    def test_status_does_not_count(self, storage, settings, clock):
        limiter = make_limiter(storage, settings, clock)
        asyncio.run(limiter.enforce_rate_limit("guest-1", True))

        first = asyncio.run(limiter.get_rate_limit_status("guest-1", True))
        second = asyncio.run(limiter.get_rate_limit_status("guest-1", True))
        assert first.remaining_requests == second.remaining_requests == 2
        assert first.allowed

    def test_status_for_unknown_identity(self, storage, settings, clock):
        limiter = make_limiter(storage, settings, clock)
        status = asyncio.run(limiter.get_rate_limit_status("nobody", True))

        assert status.allowed
        assert status.remaining_requests == 3

    def test_get_status_counts_denials(self, storage, settings, clock):
        limiter = make_limiter(storage, settings, clock)
        enforce_many(limiter, "guest-1", True, 4)

        status = limiter.get_status()
        assert status["total_requests"] == 4
        assert status["denied_requests"] == 1
        assert status["limits"]["guest"] == 3


@pytest.mark.unit
class TestFailOpen:
    """저장소 오류 시 요청 허용"""

    def test_read_failure_allows_request(self, settings, clock):
        limiter = make_limiter(FailingReadStorage(), settings, clock)
        result = asyncio.run(limiter.enforce_rate_limit("guest-1", True))

        assert result.allowed
        assert result.remaining_requests == 3

    def test_write_failure_allows_request(self, settings, clock):
        limiter = make_limiter(FailingWriteStorage(), settings, clock)
        results = enforce_many(limiter, "guest-1", True, 2)

        assert all(r.allowed for r in results)
        assert results[1].remaining_requests == 2

    def test_global_limit_read_failure_allows_request(self, settings, clock):
        limiter = make_limiter(FailingReadStorage(), settings, clock)
        assert asyncio.run(limiter.check_global_rate_limit())


@pytest.mark.unit
class TestGlobalLimit:
    """서비스 전체 시간당 제한"""

    def test_global_limit_reached(self, storage, settings, clock):
        settings.GLOBAL_HOURLY_LIMIT = 2
        limiter = make_limiter(storage, settings, clock)

        async def run():
            return [await limiter.check_global_rate_limit() for _ in range(3)]

        assert asyncio.run(run()) == [True, True, False]

    def test_next_utc_midnight(self):
        now = datetime(2025, 12, 31, 23, 59, tzinfo=timezone.utc)
        assert next_utc_midnight(now) == datetime(2026, 1, 1, tzinfo=timezone.utc)
