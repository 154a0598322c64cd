"""
재시도 검증 루프 테스트
"""
import asyncio
import pytest

from services.story_validator import RetryOptions, StoryValidator, validate_with_retry


def sequence_operation(*responses):
    """주어진 응답을 순서대로 반환 (예외면 raise)하는 비동기 작업"""
    remaining = list(responses)
    calls = []

    async def operation():
        calls.append(len(calls) + 1)
        response = remaining.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    operation.calls = calls
    return operation


def run_with_retry(operation, **options):
    retries, failures = [], []
    retry_options = RetryOptions(
        retry_delay_ms=0,
        on_retry=lambda attempt, errors: retries.append(attempt),
        on_final_failure=lambda errors: failures.append(errors),
        **options
    )
    result = asyncio.run(validate_with_retry(
        operation, StoryValidator.validate_and_repair_story_response, retry_options
    ))
    return result, retries, failures


@pytest.mark.unit
class TestValidateWithRetry:
    """재시도 루프 동작"""

    def test_first_attempt_success(self, valid_story_payload):
        result, retries, failures = run_with_retry(sequence_operation(valid_story_payload), max_retries=3)

        assert result.success
        assert len(result.history) == 1
        assert retries == []
        assert failures == []

    def test_succeeds_after_two_retryable_failures(self, valid_story_payload):
        operation = sequence_operation({}, {}, valid_story_payload)
        result, retries, failures = run_with_retry(operation, max_retries=3)

        assert result.success
        assert operation.calls == [1, 2, 3]
        assert retries == [1, 2]
        assert failures == []
        assert [record.can_retry for record in result.history] == [True, True, False]

    def test_non_retryable_failure_stops_immediately(self, valid_story_payload):
        valid_story_payload["choices"] = valid_story_payload["choices"][:1]
        operation = sequence_operation(valid_story_payload, valid_story_payload)
        result, retries, failures = run_with_retry(operation, max_retries=3)

        assert not result.success
        assert operation.calls == [1]
        assert retries == []
        assert len(failures) == 1

    def test_exhausted_retries(self):
        operation = sequence_operation({}, {}, {})
        result, retries, failures = run_with_retry(operation, max_retries=3)

        assert not result.success
        assert result.can_retry
        assert len(result.history) == 3
        assert retries == [1, 2]
        assert failures == [result.errors]

    def test_operation_exception_is_retryable(self, valid_story_payload):
        operation = sequence_operation(RuntimeError("provider down"), valid_story_payload)
        result, retries, failures = run_with_retry(operation, max_retries=3)

        assert result.success
        assert result.history[0].operation_failed
        assert result.history[0].errors == ["Operation failed: provider down"]
        assert retries == [1]

    def test_operation_exception_on_last_attempt_not_retryable(self):
        operation = sequence_operation(RuntimeError("timeout"), RuntimeError("timeout"))
        result, retries, failures = run_with_retry(operation, max_retries=2)

        assert not result.success
        assert not result.can_retry
        assert [record.can_retry for record in result.history] == [True, False]
        assert all(record.operation_failed for record in result.history)
        assert retries == [1]
        assert failures == [["Operation failed: timeout"]]

    def test_callback_errors_are_ignored(self, valid_story_payload):
        def broken_callback(*args):
            raise RuntimeError("callback failed")

        options = RetryOptions(max_retries=2, retry_delay_ms=0,
                               on_retry=broken_callback, on_final_failure=broken_callback)
        operation = sequence_operation({}, valid_story_payload)
        result = asyncio.run(validate_with_retry(
            operation, StoryValidator.validate_and_repair_story_response, options
        ))

        assert result.success
        assert len(result.history) == 2

    def test_single_attempt_budget(self):
        result, retries, failures = run_with_retry(sequence_operation({}), max_retries=1)

        assert not result.success
        assert retries == []
        assert len(failures) == 1

    def test_zero_retries_rejected(self, valid_story_payload):
        with pytest.raises(ValueError):
            run_with_retry(sequence_operation(valid_story_payload), max_retries=0)
