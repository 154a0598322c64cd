"""
사용자별 일일 요청 제한 및 서비스 전체 시간당 제한
"""

import logging
from datetime import datetime, time, timedelta, timezone
from typing import Callable, Dict, Optional

from config.settings import Settings, get_settings
from models.response_models import RateLimitResult
from models.usage_models import RateLimitRecord
from services.errors import StorageError
from services.storage import StorageBackend
from services.subscription_service import SubscriptionService, utc_now

logger = logging.getLogger(__name__)


def next_utc_midnight(now: datetime) -> datetime:
    return datetime.combine(now.date() + timedelta(days=1), time.min, tzinfo=timezone.utc)


class RateLimiter:
    """저장소 기반 일일 요청 카운터

    조회, 확인, 기록이 별도 호출이라 같은 사용자의 동시 요청은 같은 값으로
    둘 다 통과할 수 있음. 저장소 오류 시 요청 허용.
    """

    def __init__(self, storage: StorageBackend, subscriptions: SubscriptionService,
                 settings: Optional[Settings] = None, clock: Callable[[], datetime] = utc_now):
        self.storage = storage
        self.subscriptions = subscriptions
        self.settings = settings or get_settings()
        self.clock = clock
        self._total_requests = 0
        self._denied_requests = 0

    async def get_daily_limit(self, identifier: str, is_guest: bool) -> int:
        if is_guest:
            return self.settings.GUEST_DAILY_LIMIT
        return await self.subscriptions.get_daily_limit(identifier)

    async def enforce_rate_limit(self, identifier: str, is_guest: bool) -> RateLimitResult:
        """오늘 요청 1회 집계, 등급 제한에 도달하면 거부"""
        now = self.clock()
        today = now.date().isoformat()
        daily_limit = await self.get_daily_limit(identifier, is_guest)
        self._total_requests += 1

        try:
            record = await self.storage.get_rate_limit(identifier, today)
        except StorageError as e:
            logger.error("요청 제한 조회 오류 (%s): %s", identifier, e)
            return RateLimitResult(allowed=True, remaining_requests=daily_limit)

        if record is None:
            try:
                await self.storage.create_rate_limit(RateLimitRecord(
                    identifier=identifier,
                    date=today,
                    requests_count=1,
                    is_guest=is_guest,
                ))
            except StorageError as e:
                logger.error("요청 제한 생성 오류 (%s): %s", identifier, e)
            return RateLimitResult(allowed=True, remaining_requests=daily_limit - 1)

        if record.requests_count >= daily_limit:
            self._denied_requests += 1
            return RateLimitResult(
                allowed=False,
                remaining_requests=0,
                reset_time=next_utc_midnight(now),
            )

        try:
            await self.storage.update_rate_limit(identifier, today, record.requests_count + 1)
        except StorageError as e:
            logger.error("요청 제한 갱신 오류 (%s): %s", identifier, e)
            return RateLimitResult(allowed=True, remaining_requests=daily_limit - record.requests_count)

        return RateLimitResult(
            allowed=True,
            remaining_requests=daily_limit - record.requests_count - 1,
        )

    async def get_rate_limit_status(self, identifier: str, is_guest: bool) -> RateLimitResult:
        """요청을 집계하지 않고 enforce_rate_limit와 같은 결과 반환"""
        now = self.clock()
        daily_limit = await self.get_daily_limit(identifier, is_guest)

        try:
            record = await self.storage.get_rate_limit(identifier, now.date().isoformat())
        except StorageError as e:
            logger.error("요청 제한 상태 조회 오류 (%s): %s", identifier, e)
            return RateLimitResult(allowed=True, remaining_requests=daily_limit)

        used = record.requests_count if record else 0
        remaining = max(daily_limit - used, 0)
        return RateLimitResult(
            allowed=remaining > 0,
            remaining_requests=remaining,
            reset_time=next_utc_midnight(now),
        )

    async def check_global_rate_limit(self) -> bool:
        """서비스 전체 시간당 생성 요청 제한"""
        hour = self.clock().strftime("%Y-%m-%dT%H")
        try:
            count = await self.storage.get_global_requests(hour)
            if count >= self.settings.GLOBAL_HOURLY_LIMIT:
                return False
            await self.storage.set_global_requests(hour, count + 1)
        except StorageError as e:
            logger.error("전체 요청 제한 오류: %s", e)
        return True

    def get_status(self) -> Dict:
        return {
            "total_requests": self._total_requests,
            "denied_requests": self._denied_requests,
            "limits": self.settings.get_daily_limits(),
        }

    def get_total_requests(self) -> int:
        return self._total_requests
