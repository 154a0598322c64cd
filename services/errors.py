"""
생성 파이프라인 예외
"""

from datetime import datetime
from typing import Optional


class StorageError(Exception):
    """저장소 읽기 / 쓰기 실패"""


class QuotaExceededError(Exception):
    def __init__(self, message: str = "Rate limit exceeded", reset_time: Optional[datetime] = None,
                 remaining_requests: int = 0):
        super().__init__(message)
        self.reset_time = reset_time
        self.remaining_requests = remaining_requests


class FeatureGateDeniedError(Exception):
    def __init__(self, reason: str):
        super().__init__(f"Premium feature required: {reason}")
        self.reason = reason
