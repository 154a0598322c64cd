"""
응답 모델 정의
"""

from datetime import datetime
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional

from models.story_models import EndingType, RarityLevel, StoryResponse


class RateLimitResult(BaseModel):
    allowed: bool
    remaining_requests: int
    reset_time: Optional[datetime] = None


class StoryAccessResult(BaseModel):
    allowed: bool
    reason: Optional[str] = None


class SubscriptionFeatures(BaseModel):
    daily_story_limit: int
    extended_story_length: bool
    premium_genres: List[str]
    advanced_analytics: bool
    priority_support: bool


class SubscriptionStatus(BaseModel):
    tier: str
    is_active: bool
    expires_at: Optional[datetime] = None
    days_remaining: int = 0
    features: SubscriptionFeatures


class EndingClassification(BaseModel):
    ending_tag: str
    title: str
    description: str
    rarity: RarityLevel
    category: EndingType


class GenerationOutcome(BaseModel):
    story: StoryResponse
    errors: List[str] = Field(default_factory=list)
    attempts: int = 0
    used_fallback: bool = False
    remaining_requests: int = 0
    tokens_used: int = 0
    decision_keys: Dict[str, str] = Field(default_factory=dict)
    ending: Optional[EndingClassification] = None


class ValidationReport(BaseModel):
    success: bool
    data: Optional[Dict[str, Any]] = None
    errors: List[str] = Field(default_factory=list)
    can_retry: bool = False


class UsageStats(BaseModel):
    timeframe: str
    total_tokens: int
    total_requests: int
    average_tokens_per_request: float
    genre_breakdown: Dict[str, int]
    start_time: datetime
    end_time: datetime
