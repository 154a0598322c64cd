"""
구독 등급 확인 및 프리미엄 기능 제한
"""

import logging
import math
from datetime import datetime, timezone
from typing import Callable, Optional

from config.settings import Settings, get_settings
from models.response_models import StoryAccessResult, SubscriptionFeatures, SubscriptionStatus
from models.story_models import PREMIUM_GENRES, PREMIUM_LENGTHS
from services.errors import StorageError
from services.storage import StorageBackend

logger = logging.getLogger(__name__)

TIER_FREE = "free"
TIER_PREMIUM = "premium"

REASON_PREMIUM_GENRE = "premium_genre_required"
REASON_EXTENDED_LENGTH = "extended_length_premium"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SubscriptionService:
    def __init__(self, storage: StorageBackend, settings: Optional[Settings] = None,
                 clock: Callable[[], datetime] = utc_now):
        self.storage = storage
        self.settings = settings or get_settings()
        self.clock = clock

    def get_features(self, tier: str) -> SubscriptionFeatures:
        if tier == TIER_PREMIUM:
            return SubscriptionFeatures(
                daily_story_limit=self.settings.PREMIUM_DAILY_LIMIT,
                extended_story_length=True,
                premium_genres=list(PREMIUM_GENRES),
                advanced_analytics=True,
                priority_support=True,
            )
        return SubscriptionFeatures(
            daily_story_limit=self.settings.FREE_DAILY_LIMIT,
            extended_story_length=False,
            premium_genres=[],
            advanced_analytics=False,
            priority_support=False,
        )

    async def get_subscription_status(self, user_id: Optional[str]) -> SubscriptionStatus:
        """실제 적용 등급 확인 (만료된 프리미엄은 free)"""
        free = SubscriptionStatus(tier=TIER_FREE, is_active=False, features=self.get_features(TIER_FREE))
        if not user_id:
            return free

        subscription = await self.storage.get_subscription(user_id)
        if subscription is None or subscription.tier != TIER_PREMIUM:
            return free

        now = self.clock()
        expires_at = subscription.expires_at
        if expires_at is not None and expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)

        if expires_at is not None and expires_at <= now:
            return free

        days_remaining = 0
        if expires_at is not None:
            days_remaining = math.ceil((expires_at - now).total_seconds() / 86400)

        return SubscriptionStatus(
            tier=TIER_PREMIUM,
            is_active=True,
            expires_at=expires_at,
            days_remaining=days_remaining,
            features=self.get_features(TIER_PREMIUM),
        )

    async def has_premium_access(self, user_id: Optional[str]) -> bool:
        if not user_id:
            return False
        try:
            status = await self.get_subscription_status(user_id)
        except StorageError as e:
            logger.error("프리미엄 기능 확인 실패 (%s): %s", user_id, e)
            return False
        return status.is_active and status.tier == TIER_PREMIUM

    async def get_daily_limit(self, user_id: Optional[str]) -> int:
        """로그인 사용자 일일 제한, 저장소 오류 시 free 기준"""
        try:
            status = await self.get_subscription_status(user_id)
        except StorageError as e:
            logger.error("프리미엄 제한 확인 실패 (%s): %s", user_id, e)
            return self.settings.FREE_DAILY_LIMIT
        return status.features.daily_story_limit

    async def validate_story_request(self, user_id: Optional[str], genre: str, length: str) -> StoryAccessResult:
        """프리미엄 장르와 extended 길이는 활성 프리미엄 필요"""
        if genre in PREMIUM_GENRES and not await self.has_premium_access(user_id):
            return StoryAccessResult(allowed=False, reason=REASON_PREMIUM_GENRE)

        if length in PREMIUM_LENGTHS and not await self.has_premium_access(user_id):
            return StoryAccessResult(allowed=False, reason=REASON_EXTENDED_LENGTH)

        return StoryAccessResult(allowed=True)
