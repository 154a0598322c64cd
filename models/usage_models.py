"""
저장소 행 모델 (요청 제한, 구독, 토큰 사용량)
"""

from datetime import datetime
from pydantic import BaseModel, Field
from typing import Optional


class RateLimitRecord(BaseModel):
    identifier: str = Field(..., description="User id or guest session id")
    date: str = Field(..., pattern=r"^\d{4}-\d{2}-\d{2}$", description="UTC day (YYYY-MM-DD)")
    requests_count: int = Field(..., ge=0, description="Requests made that day")
    is_guest: bool = Field(False, description="Guest identity")


class UserSubscription(BaseModel):
    user_id: str
    tier: str = Field("free", description="free | premium")
    expires_at: Optional[datetime] = Field(None, description="Premium expiry (None = no expiry)")


class TokenUsage(BaseModel):
    user_id: Optional[str] = None
    session_id: str
    genre: str
    tokens_used: int = Field(0, ge=0)
    request_type: str = "story_generation"
    created_at: Optional[datetime] = None
