"""
요청 제한 / 구독 / 토큰 사용량 저장소 백엔드
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar

import aiohttp
from pydantic import ValidationError

from models.usage_models import RateLimitRecord, TokenUsage, UserSubscription
from services.errors import StorageError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class StorageBackend(ABC):
    @abstractmethod
    async def get_rate_limit(self, identifier: str, date: str) -> Optional[RateLimitRecord]:
        pass

    @abstractmethod
    async def create_rate_limit(self, record: RateLimitRecord) -> None:
        pass

    @abstractmethod
    async def update_rate_limit(self, identifier: str, date: str, requests_count: int) -> None:
        pass

    @abstractmethod
    async def get_global_requests(self, hour: str) -> int:
        pass

    @abstractmethod
    async def set_global_requests(self, hour: str, requests_count: int) -> None:
        pass

    @abstractmethod
    async def get_subscription(self, user_id: str) -> Optional[UserSubscription]:
        pass

    @abstractmethod
    async def log_token_usage(self, usage: TokenUsage) -> None:
        pass

    @abstractmethod
    async def get_token_usage(self, since: datetime) -> List[TokenUsage]:
        pass

    @abstractmethod
    def get_backend_name(self) -> str:
        pass


class InMemoryStorage(StorageBackend):
    """프로세스 메모리 저장소 (개발 / 테스트용)"""

    def __init__(self):
        self._rate_limits: Dict[Tuple[str, str], RateLimitRecord] = {}
        self._global: Dict[str, int] = {}
        self._subscriptions: Dict[str, UserSubscription] = {}
        self._usage: List[TokenUsage] = []

    async def get_rate_limit(self, identifier: str, date: str) -> Optional[RateLimitRecord]:
        record = self._rate_limits.get((identifier, date))
        return record.model_copy() if record else None

    async def create_rate_limit(self, record: RateLimitRecord) -> None:
        key = (record.identifier, record.date)
        if key in self._rate_limits:
            raise StorageError(f"Rate limit row already exists: {key}")
        self._rate_limits[key] = record.model_copy()

    async def update_rate_limit(self, identifier: str, date: str, requests_count: int) -> None:
        record = self._rate_limits.get((identifier, date))
        if record is None:
            raise StorageError(f"No rate limit row for {identifier} on {date}")
        record.requests_count = requests_count

    async def get_global_requests(self, hour: str) -> int:
        return self._global.get(hour, 0)

    async def set_global_requests(self, hour: str, requests_count: int) -> None:
        self._global[hour] = requests_count

    async def get_subscription(self, user_id: str) -> Optional[UserSubscription]:
        return self._subscriptions.get(user_id)

    def set_subscription(self, subscription: UserSubscription) -> None:
        self._subscriptions[subscription.user_id] = subscription

    async def log_token_usage(self, usage: TokenUsage) -> None:
        self._usage.append(usage)

    async def get_token_usage(self, since: datetime) -> List[TokenUsage]:
        return [u for u in self._usage if u.created_at is None or u.created_at >= since]

    def get_backend_name(self) -> str:
        return "memory"


def _decode_rows(table: str, decode: Callable[[], T]) -> T:
    """백엔드 행 변환, 형식이 잘못된 행은 StorageError"""
    try:
        return decode()
    except (ValidationError, KeyError, IndexError, TypeError, AttributeError) as e:
        logger.error("%s 행 형식 오류: %s", table, e)
        raise StorageError(f"Malformed {table} row: {e}")


class PostgrestStorage(StorageBackend):
    """호스팅 Postgres REST 저장소 (rate_limits, global_rate_limits, user_profiles, token_usage_logs)"""

    def __init__(self, base_url: str, api_key: str, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    def _headers(self, prefer: Optional[str] = None) -> Dict[str, str]:
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    async def _request(self, method: str, table: str, params: Optional[Dict[str, str]] = None,
                       payload: Any = None, prefer: Optional[str] = None) -> Any:
        url = f"{self.base_url}/{table}"
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.request(method, url, params=params, json=payload,
                                           headers=self._headers(prefer)) as response:
                    if response.status >= 400:
                        error_text = await response.text()
                        raise StorageError(f"{method} {table} failed: {response.status} {error_text}")
                    if response.status == 204:
                        return None
                    return await response.json()
        except asyncio.TimeoutError:
            raise StorageError(f"{method} {table} timed out")
        except aiohttp.ClientError as e:
            raise StorageError(f"{method} {table} failed: {e}")

    async def get_rate_limit(self, identifier: str, date: str) -> Optional[RateLimitRecord]:
        rows = await self._request("GET", "rate_limits", params={
            "identifier": f"eq.{identifier}",
            "date": f"eq.{date}",
            "select": "identifier,date,requests_count,is_guest",
        })
        if not rows:
            return None
        return _decode_rows("rate_limits", lambda: RateLimitRecord(**rows[0]))

    async def create_rate_limit(self, record: RateLimitRecord) -> None:
        await self._request("POST", "rate_limits", payload=record.model_dump(), prefer="return=minimal")

    async def update_rate_limit(self, identifier: str, date: str, requests_count: int) -> None:
        await self._request(
            "PATCH", "rate_limits",
            params={"identifier": f"eq.{identifier}", "date": f"eq.{date}"},
            payload={"requests_count": requests_count, "updated_at": datetime.now(timezone.utc).isoformat()},
            prefer="return=minimal",
        )

    async def get_global_requests(self, hour: str) -> int:
        rows = await self._request("GET", "global_rate_limits", params={
            "hour": f"eq.{hour}",
            "select": "requests_count",
        })
        if not rows:
            return 0
        count = _decode_rows("global_rate_limits", lambda: rows[0]["requests_count"])
        if not isinstance(count, int) or isinstance(count, bool):
            raise StorageError(f"Malformed global_rate_limits row: requests_count={count!r}")
        return count

    async def set_global_requests(self, hour: str, requests_count: int) -> None:
        await self._request(
            "POST", "global_rate_limits",
            payload={"hour": hour, "requests_count": requests_count},
            prefer="resolution=merge-duplicates,return=minimal",
        )

    async def get_subscription(self, user_id: str) -> Optional[UserSubscription]:
        rows = await self._request("GET", "user_profiles", params={
            "id": f"eq.{user_id}",
            "select": "id,subscription_tier,subscription_expires_at",
        })
        if not rows:
            return None
        return _decode_rows("user_profiles", lambda: UserSubscription(
            user_id=rows[0]["id"],
            tier=rows[0].get("subscription_tier") or "free",
            expires_at=rows[0].get("subscription_expires_at"),
        ))

    async def log_token_usage(self, usage: TokenUsage) -> None:
        await self._request(
            "POST", "token_usage_logs",
            payload=usage.model_dump(mode="json"),
            prefer="return=minimal",
        )

    async def get_token_usage(self, since: datetime) -> List[TokenUsage]:
        rows = await self._request("GET", "token_usage_logs", params={
            "created_at": f"gte.{since.isoformat()}",
            "order": "created_at.desc",
        })
        return _decode_rows("token_usage_logs", lambda: [TokenUsage(**row) for row in rows or []])

    def get_backend_name(self) -> str:
        return "postgrest"


def create_storage(settings) -> StorageBackend:
    if settings.STORAGE_BACKEND == "postgrest" and settings.POSTGREST_URL:
        return PostgrestStorage(settings.POSTGREST_URL, settings.POSTGREST_API_KEY)
    if settings.STORAGE_BACKEND not in ("memory", "postgrest"):
        logger.warning("알 수 없는 STORAGE_BACKEND %s, 메모리 저장소 사용", settings.STORAGE_BACKEND)
    return InMemoryStorage()
