"""
Pytest 설정 및 공통 fixture
"""
import pytest
from fastapi.testclient import TestClient
from datetime import datetime, timezone
import sys
import os

# 프로젝트 루트를 Python 경로에 추가
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import main
from config.settings import Settings
from providers.llm_provider import MockProvider
from services.storage import InMemoryStorage
from services.story_service import StoryService

FIXED_NOW = datetime(2025, 6, 15, 12, 30, tzinfo=timezone.utc)


@pytest.fixture
def fixed_now():
    return FIXED_NOW


@pytest.fixture
def clock():
    """2025-06-15 12:30 UTC 고정 시계"""
    return lambda: FIXED_NOW


@pytest.fixture
def settings():
    return Settings(
        AI_PROVIDER="mock",
        STORAGE_BACKEND="memory",
        RETRY_DELAY_MS=0,
        MAX_RETRIES=3,
        GUEST_DAILY_LIMIT=3,
        FREE_DAILY_LIMIT=10,
        PREMIUM_DAILY_LIMIT=100,
        GLOBAL_HOURLY_LIMIT=1000,
    )


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def story_service(storage, settings, clock):
    return StoryService(provider=MockProvider(), storage=storage, settings=settings, clock=clock)


@pytest.fixture
def client(monkeypatch, story_service):
    """메모리 저장소 서비스를 쓰는 FastAPI 테스트 클라이언트"""
    monkeypatch.setattr(main, "story_service", story_service)
    return TestClient(main.app)


@pytest.fixture
def internal_headers():
    return {"X-Internal-API-Key": main.settings.INTERNAL_API_KEY}


@pytest.fixture
def game_state_payload():
    return {
        "act": 1,
        "flags": ["story_started"],
        "relationships": {"guide": 10},
        "inventory": ["lantern"],
        "personalityTraits": {
            "riskTaking": 50,
            "empathy": 55,
            "pragmatism": 50,
            "creativity": 60,
            "leadership": 45
        }
    }


@pytest.fixture
def valid_story_payload(game_state_payload):
    """정상 스토리 응답 (camelCase)"""
    return {
        "storyText": "You wake in a quiet village at dawn. Smoke rises from the chimney of the old mill.",
        "choices": [
            {"id": "A", "text": "Walk to the old mill", "slug": "walk_to_mill",
             "traits_impact": {"riskTaking": 1}},
            {"id": "B", "text": "Knock on the nearest door", "slug": "knock_door",
             "consequences": ["add_flag:met_villager"]},
            {"id": "C", "text": "Wait and watch the square", "slug": "watch_square"}
        ],
        "gameState": game_state_payload,
        "isEnding": False
    }


@pytest.fixture
def sample_generation_request():
    """게스트 세션 첫 생성 요청"""
    return {
        "genre": "fantasy",
        "length": "standard",
        "challenge": "challenging",
        "sessionId": "guest-session-1"
    }
