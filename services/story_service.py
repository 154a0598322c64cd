"""
스토리 생성 서비스 (접근 제어 + 검증 / 재시도 생성 + 대체 콘텐츠)
"""

from datetime import datetime
from typing import Any, Callable, Dict, Optional, Tuple
import logging
import time

from config.settings import Settings, get_settings
from models.request_models import GenerationRequest
from models.response_models import EndingClassification, GenerationOutcome, RateLimitResult, ValidationReport
from models.story_models import GameState, StoryResponse
from models.usage_models import TokenUsage
from prompt.prompt_manager import get_prompt_manager
from providers.llm_provider import LLMProvider, LLMProviderFactory
from services.content_safety import apply_content_safety_filter, validate_content_safety
from services.errors import FeatureGateDeniedError, QuotaExceededError
from services.storage import StorageBackend, create_storage
from services.story_validator import (
    DEFAULT_RETRY_OPTIONS,
    REPAIRED_RESPONSE_NOTICE,
    RetryOptions,
    StoryValidator,
    ValidationResult,
    validate_with_retry,
)
from services.subscription_service import SubscriptionService, utc_now
from services.usage_tracker import UsageTracker
from templates.fallback_templates import get_bridge, get_opening, get_target_steps, next_act
from utils.choice_utils import extract_story_context, generate_decision_key_hash, normalize_choice_id
from utils.endings import classify_ending, detect_ending
from utils.game_state import add_flag, create_initial_game_state, merge_game_state
from utils.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

PROHIBITED_CONTENT_ERROR = "Story contains prohibited content"


class StoryService:
    """접근 확인 후 생성, 검증 / 복구 재시도, 실패 시 준비된 콘텐츠 사용"""

    def __init__(self, provider: Optional[LLMProvider] = None, storage: Optional[StorageBackend] = None,
                 settings: Optional[Settings] = None, clock: Callable[[], datetime] = utc_now):
        self.settings = settings or get_settings()
        self.provider = provider or LLMProviderFactory.get_provider()
        self.storage = storage or create_storage(self.settings)
        self.subscriptions = SubscriptionService(self.storage, self.settings, clock)
        self.rate_limiter = RateLimiter(self.storage, self.subscriptions, self.settings, clock)
        self.usage_tracker = UsageTracker(self.storage, clock)
        self.prompt_manager = get_prompt_manager()

        self.stats = {
            "total_requests": 0,
            "successful_generations": 0,
            "repaired_generations": 0,
            "fallback_generations": 0,
            "feature_gate_denials": 0,
            "quota_denials": 0,
            "average_generation_time": 0.0,
        }

    def get_retry_options(self) -> RetryOptions:
        return RetryOptions(
            max_retries=self.settings.MAX_RETRIES,
            retry_delay_ms=self.settings.RETRY_DELAY_MS,
            on_retry=DEFAULT_RETRY_OPTIONS.on_retry,
            on_final_failure=DEFAULT_RETRY_OPTIONS.on_final_failure,
        )

    async def check_access(self, request: GenerationRequest) -> RateLimitResult:
        """프리미엄 기능 확인 → 일일 요청 제한 → 서비스 전체 시간당 제한"""
        access = await self.subscriptions.validate_story_request(request.user_id, request.genre, request.length)
        if not access.allowed:
            self.stats["feature_gate_denials"] += 1
            raise FeatureGateDeniedError(access.reason)

        limit = await self.rate_limiter.enforce_rate_limit(request.requester_id, request.is_guest)
        if not limit.allowed:
            self.stats["quota_denials"] += 1
            raise QuotaExceededError(reset_time=limit.reset_time, remaining_requests=0)

        if not await self.rate_limiter.check_global_rate_limit():
            self.stats["quota_denials"] += 1
            raise QuotaExceededError("Service is at capacity, try again later",
                                     remaining_requests=limit.remaining_requests)

        return limit

    async def generate(self, request: GenerationRequest) -> GenerationOutcome:
        self.stats["total_requests"] += 1
        limit = await self.check_access(request)

        start_time = time.time()
        context = self.prompt_manager.build_context(request)
        attempt = 0

        async def operation() -> Any:
            nonlocal attempt
            attempt += 1
            prompt = self.prompt_manager.get_prompt(request, attempt)
            return await self.provider.generate_story(prompt.combined(), **context)

        result = await validate_with_retry(
            operation,
            self._validate_generated,
            self.get_retry_options(),
        )

        if result.success:
            story, ending = self._finalize_story(request, result.data)
            tokens_used = self.provider.last_tokens_used
            used_fallback = False
            self.stats["successful_generations"] += 1
            if REPAIRED_RESPONSE_NOTICE in result.errors:
                self.stats["repaired_generations"] += 1
        else:
            logger.error("모든 생성 시도 실패, 대체 콘텐츠 사용: %s", result.errors)
            story = self._create_fallback_story(request)
            ending = None
            tokens_used = 0
            used_fallback = True
            self.stats["fallback_generations"] += 1

        self._update_generation_time(time.time() - start_time)

        await self.usage_tracker.log_token_usage(TokenUsage(
            user_id=request.user_id,
            session_id=request.session_id,
            genre=request.genre,
            tokens_used=tokens_used,
            request_type="story_generation",
        ))

        return GenerationOutcome(
            story=story,
            errors=result.errors,
            attempts=len(result.history),
            used_fallback=used_fallback,
            remaining_requests=limit.remaining_requests,
            tokens_used=tokens_used,
            decision_keys=self._decision_keys(request, story),
            ending=ending,
        )

    @staticmethod
    def _validate_generated(data: Any) -> ValidationResult[StoryResponse]:
        result = StoryValidator.validate_and_repair_story_response(data)
        if result.success and not validate_content_safety(result.data):
            return ValidationResult.fail([PROHIBITED_CONTENT_ERROR], can_retry=True)
        return result

    def _finalize_story(self, request: GenerationRequest,
                        story: StoryResponse) -> Tuple[StoryResponse, Optional[EndingClassification]]:
        choices = [
            choice.model_copy(update={"id": normalize_choice_id(choice.id, index)})
            for index, choice in enumerate(story.choices)
        ]
        game_state = story.game_state
        if request.game_state is not None:
            game_state = merge_game_state(request.game_state, game_state)

        story = story.model_copy(update={"choices": choices, "game_state": game_state})
        story, ending = self._resolve_ending(request, story)
        return apply_content_safety_filter(story, request.challenge), ending

    @staticmethod
    def _resolve_ending(request: GenerationRequest,
                        story: StoryResponse) -> Tuple[StoryResponse, Optional[EndingClassification]]:
        """AI가 끝낸 스토리는 분류만, 목표 단계에 도달한 스토리는 엔딩 감지 후 분류"""
        if story.is_ending:
            ending = classify_ending(story.story_text, story.game_state, request.genre)
        elif (request.current_step or 0) >= get_target_steps(request.length):
            ending = detect_ending(story.story_text, story.game_state, request.genre, request.length)
            if ending is None:
                return story, None
        else:
            return story, None

        # AI가 지정한 엔딩 값 우선
        return story.model_copy(update={
            "is_ending": True,
            "ending_type": story.ending_type or ending.category,
            "ending_tag": story.ending_tag or ending.ending_tag,
        }), ending

    def _create_fallback_story(self, request: GenerationRequest) -> StoryResponse:
        if request.is_continuation:
            segment = get_bridge()
            state: GameState = request.game_state
            state = state.model_copy(update={"act": next_act(request.current_step, state.act)})
            state = add_flag(state, "bridge_segment")
        else:
            segment = get_opening(request.genre)
            state = request.game_state or create_initial_game_state(request.genre)

        return StoryResponse.model_validate({
            "storyText": segment["storyText"],
            "choices": segment["choices"],
            "gameState": state,
            "isEnding": False,
        })

    def _decision_keys(self, request: GenerationRequest, story: StoryResponse) -> Dict[str, str]:
        scene = extract_story_context(story.story_text)
        return {
            choice.id: generate_decision_key_hash(request.genre, story.game_state.act, scene, choice.text)
            for choice in story.choices
        }

    def _update_generation_time(self, elapsed: float) -> None:
        completed = self.stats["successful_generations"] + self.stats["fallback_generations"]
        current = self.stats["average_generation_time"]
        self.stats["average_generation_time"] = ((current * (completed - 1)) + elapsed) / max(completed, 1)

    def validate_story_payload(self, payload: Any, repair: bool = True) -> ValidationReport:
        """생성 없이 임의 데이터 검증"""
        if repair:
            result = StoryValidator.validate_and_repair_story_response(payload)
        else:
            result = StoryValidator.validate_story_response(payload)

        return ValidationReport(
            success=result.success,
            data=result.data.model_dump(by_alias=True, exclude_none=True) if result.data else None,
            errors=result.errors,
            can_retry=result.can_retry,
        )

    def get_stats(self) -> Dict[str, Any]:
        return dict(self.stats)
