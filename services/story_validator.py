"""
스토리 응답 검증, 구조 복구, 재시도 검증 루프
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Generic, List, Optional, TypeVar

from pydantic import ValidationError

from models.story_models import (
    DEFAULT_TRAIT_VALUE,
    TRAIT_NAMES,
    Choice,
    GameState,
    StoryResponse,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_ERROR_TYPES = {
    "missing",
    "string_type",
    "int_type",
    "float_type",
    "bool_type",
    "list_type",
    "dict_type",
    "model_type",
    "model_attributes_type",
}
RETRYABLE_MESSAGE_PATTERNS = ["Field required", "Input should be a valid"]

REPAIRED_RESPONSE_NOTICE = "Story response was repaired"
REPAIRED_GAME_STATE_NOTICE = "Game state was repaired"


@dataclass
class AttemptRecord:
    attempt: int
    errors: List[str]
    can_retry: bool
    operation_failed: bool = False


@dataclass
class ValidationResult(Generic[T]):
    success: bool
    data: Optional[T] = None
    errors: List[str] = field(default_factory=list)
    can_retry: bool = False
    history: List[AttemptRecord] = field(default_factory=list)

    @classmethod
    def ok(cls, data: T, notices: Optional[List[str]] = None) -> "ValidationResult[T]":
        return cls(success=True, data=data, errors=list(notices or []), can_retry=False)

    @classmethod
    def fail(cls, errors: List[str], can_retry: bool) -> "ValidationResult[T]":
        return cls(success=False, errors=list(errors), can_retry=can_retry)


@dataclass
class RetryOptions:
    max_retries: int = 3
    retry_delay_ms: int = 1000
    on_retry: Optional[Callable[[int, List[str]], None]] = None
    on_final_failure: Optional[Callable[[List[str]], None]] = None


class StoryValidator:
    """엄격한 스키마 검증 + 선택지 / 게임 상태 복구"""

    @staticmethod
    def validate_story_response(data: Any) -> ValidationResult[StoryResponse]:
        """AI 응답을 StoryResponse 형식으로 검증"""
        try:
            story = StoryResponse.model_validate(data)
        except ValidationError as e:
            issues = e.errors()
            return ValidationResult.fail(
                StoryValidator.format_errors(issues),
                StoryValidator.is_retryable_error(issues),
            )
        return ValidationResult.ok(story)

    @staticmethod
    def validate_choices(choices: Any) -> ValidationResult[List[Choice]]:
        """선택지 배열 검증, 잘못된 항목은 개별 복구"""
        if not isinstance(choices, list):
            return ValidationResult.fail(["Choices must be an array"], can_retry=True)

        # 선택지 개수는 복구하지 않음
        if len(choices) < 2 or len(choices) > 4:
            return ValidationResult.fail(
                [f"Expected 2-4 choices, got {len(choices)}"], can_retry=False
            )

        validated: List[Choice] = []
        notices: List[str] = []
        errors: List[str] = []

        for index, choice in enumerate(choices):
            try:
                validated.append(Choice.model_validate(choice))
                continue
            except ValidationError as e:
                issues = e.errors()

            repaired = StoryValidator.repair_choice(choice, index)
            if repaired is not None:
                validated.append(repaired)
                notices.append(f"Choice {index + 1} was repaired")
            else:
                errors.append(f"Choice {index + 1}: {', '.join(StoryValidator.format_errors(issues))}")

        if len(validated) >= 2:
            return ValidationResult.ok(validated, notices + errors)

        return ValidationResult.fail(errors, can_retry=True)

    @staticmethod
    def validate_game_state(data: Any) -> ValidationResult[GameState]:
        """게임 상태 검증, 실패 시 복구본 사용"""
        try:
            return ValidationResult.ok(GameState.model_validate(data))
        except ValidationError as e:
            issues = e.errors()

        repaired = StoryValidator.repair_game_state(data)
        if repaired is not None:
            return ValidationResult.ok(repaired, [REPAIRED_GAME_STATE_NOTICE])

        return ValidationResult.fail(StoryValidator.format_errors(issues), can_retry=True)

    @staticmethod
    def validate_and_repair_story_response(data: Any) -> ValidationResult[StoryResponse]:
        """엄격 검증 후 재시도 가능한 실패면 선택지와 게임 상태를 다시 만들어 재검증"""
        result = StoryValidator.validate_story_response(data)
        if result.success or not result.can_retry or not isinstance(data, dict):
            return result

        choices_result = StoryValidator.validate_choices(data.get("choices"))
        raw_state = data.get("gameState", data.get("game_state"))
        state_result = StoryValidator.validate_game_state(raw_state)

        if not choices_result.success or not state_result.success:
            logger.debug(
                "스토리 응답 복구 실패: choices=%s game_state=%s",
                choices_result.errors, state_result.errors,
            )
            return result

        candidate: Dict[str, Any] = {
            key: value for key, value in data.items()
            if key not in ("choices", "gameState", "game_state")
        }
        candidate["choices"] = choices_result.data
        candidate["gameState"] = state_result.data

        repaired = StoryValidator.validate_story_response(candidate)
        if not repaired.success:
            return repaired

        notices = [REPAIRED_RESPONSE_NOTICE] + choices_result.errors + state_result.errors
        return ValidationResult.ok(repaired.data, notices)

    @staticmethod
    def repair_choice(choice: Any, index: int) -> Optional[Choice]:
        """누락된 id/text/slug를 위치 기반 기본값으로 채움, 그래도 잘못되면 None"""
        if not isinstance(choice, dict):
            return None

        consequences = choice.get("consequences")
        traits_impact = choice.get("traits_impact", choice.get("traitsImpact"))
        repaired = {
            "id": choice.get("id") or choice.get("option_id") or chr(65 + index),
            "text": (choice.get("text") or choice.get("description") or choice.get("option")
                     or choice.get("label") or f"Choice {index + 1}"),
            "slug": choice.get("slug") or choice.get("choice_slug") or f"choice_{index + 1}",
            "consequences": consequences if isinstance(consequences, list) else None,
            "traits_impact": traits_impact if isinstance(traits_impact, dict) else None,
        }

        try:
            return Choice.model_validate(repaired)
        except ValidationError:
            return None

    @staticmethod
    def repair_game_state(data: Any) -> Optional[GameState]:
        """누락된 게임 상태 필드를 기본값으로 채움, 그래도 잘못되면 None"""
        if not isinstance(data, dict):
            return None

        act = data.get("act")
        if not isinstance(act, int) or isinstance(act, bool) or act < 1:
            act = 1

        flags = data.get("flags")
        inventory = data.get("inventory")
        relationships = data.get("relationships")
        raw_traits = data.get("personalityTraits", data.get("personality_traits"))
        if not isinstance(raw_traits, dict):
            raw_traits = {}

        traits = {}
        for name in TRAIT_NAMES:
            value = raw_traits.get(name, raw_traits.get(_snake(name)))
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                traits[name] = DEFAULT_TRAIT_VALUE
            else:
                traits[name] = int(max(0, min(100, value)))

        repaired = {
            "act": act,
            "flags": flags if isinstance(flags, list) else [],
            "relationships": relationships if isinstance(relationships, dict) else {},
            "inventory": inventory if isinstance(inventory, list) else [],
            "personalityTraits": traits,
        }

        try:
            return GameState.model_validate(repaired)
        except ValidationError:
            return None

    @staticmethod
    def is_retryable_error(issues: List[Dict[str, Any]]) -> bool:
        """필드 누락과 타입 불일치는 재시도 대상"""
        for issue in issues:
            if issue.get("type") in RETRYABLE_ERROR_TYPES:
                return True
            message = issue.get("msg", "")
            if any(pattern in message for pattern in RETRYABLE_MESSAGE_PATTERNS):
                return True
        return False

    @staticmethod
    def format_errors(issues: List[Dict[str, Any]]) -> List[str]:
        messages = []
        for issue in issues:
            loc = issue.get("loc") or ()
            path = f"{'.'.join(str(part) for part in loc)}: " if loc else ""
            messages.append(f"{path}{issue.get('msg', 'Invalid value')}")
        return messages


def _snake(name: str) -> str:
    return "".join(f"_{c.lower()}" if c.isupper() else c for c in name)


def _notify(callback: Optional[Callable], *args) -> None:
    if callback is None:
        return
    try:
        callback(*args)
    except Exception:
        logger.warning("재시도 콜백 오류 (무시)", exc_info=True)


async def validate_with_retry(
    operation: Callable[[], Awaitable[Any]],
    validator: Callable[[Any], ValidationResult[T]],
    options: Optional[RetryOptions] = None,
) -> ValidationResult[T]:
    """작업 실행 후 결과 검증, 재시도 가능한 실패는 max_retries까지 재시도"""
    options = options or RetryOptions()
    if options.max_retries < 1:
        raise ValueError("max_retries must be at least 1")

    history: List[AttemptRecord] = []
    result: ValidationResult[T] = ValidationResult.fail(["No attempts made"], can_retry=False)

    for attempt in range(1, options.max_retries + 1):
        operation_failed = False
        try:
            data = await operation()
        except Exception as e:
            operation_failed = True
            logger.warning("생성 작업 실패 (시도 %d/%d): %s", attempt, options.max_retries, e)
            result = ValidationResult.fail(
                [f"Operation failed: {e}"], can_retry=attempt < options.max_retries
            )
        else:
            result = validator(data)

        history.append(AttemptRecord(attempt, list(result.errors), result.can_retry, operation_failed))

        if result.success:
            result.history = history
            return result

        if not result.can_retry or attempt == options.max_retries:
            break

        _notify(options.on_retry, attempt, result.errors)
        await asyncio.sleep(options.retry_delay_ms / 1000)

    _notify(options.on_final_failure, result.errors)
    result.history = history
    return result


def _log_retry(attempt: int, errors: List[str]) -> None:
    logger.warning("스토리 검증 실패 (시도 %d): %s", attempt, errors)


def _log_final_failure(errors: List[str]) -> None:
    logger.error("모든 재시도 후 스토리 검증 실패: %s", errors)


DEFAULT_RETRY_OPTIONS = RetryOptions(
    max_retries=3,
    retry_delay_ms=1000,
    on_retry=_log_retry,
    on_final_failure=_log_final_failure,
)
