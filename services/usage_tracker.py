"""
토큰 사용량 기록 및 집계
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Dict

from models.response_models import UsageStats
from models.usage_models import TokenUsage
from services.errors import StorageError
from services.storage import StorageBackend
from services.subscription_service import utc_now

logger = logging.getLogger(__name__)

TIMEFRAMES = {
    "hour": timedelta(hours=1),
    "day": timedelta(days=1),
    "week": timedelta(weeks=1),
}

COST_PER_TOKEN = {
    "gpt-4": 0.00003,
    "gpt-4o-mini": 0.0000006,
    "gpt-3.5-turbo": 0.000002,
    "gemini-1.5-flash": 0.0000003,
}


def estimate_token_cost(tokens_used: int, model: str = "gpt-4") -> float:
    return tokens_used * COST_PER_TOKEN.get(model, COST_PER_TOKEN["gpt-4"])


class UsageTracker:
    def __init__(self, storage: StorageBackend, clock: Callable[[], datetime] = utc_now):
        self.storage = storage
        self.clock = clock

    async def log_token_usage(self, usage: TokenUsage) -> None:
        """사용량 기록, 실패해도 생성은 계속"""
        if usage.created_at is None:
            usage = usage.model_copy(update={"created_at": self.clock()})
        try:
            await self.storage.log_token_usage(usage)
        except StorageError as e:
            logger.error("토큰 사용량 기록 오류: %s", e)

    async def get_usage_stats(self, timeframe: str = "day") -> UsageStats:
        now = self.clock()
        start_time = now - TIMEFRAMES.get(timeframe, TIMEFRAMES["day"])
        logs = await self.storage.get_token_usage(start_time)

        total_tokens = sum(log.tokens_used for log in logs)
        total_requests = len(logs)
        genre_breakdown: Dict[str, int] = {}
        for log in logs:
            genre_breakdown[log.genre] = genre_breakdown.get(log.genre, 0) + log.tokens_used

        return UsageStats(
            timeframe=timeframe if timeframe in TIMEFRAMES else "day",
            total_tokens=total_tokens,
            total_requests=total_requests,
            average_tokens_per_request=total_tokens / total_requests if total_requests else 0.0,
            genre_breakdown=genre_breakdown,
            start_time=start_time,
            end_time=now,
        )
