"""
스토리 검증 / 복구 테스트
"""
import copy
import pytest

from services.story_validator import (
    REPAIRED_GAME_STATE_NOTICE,
    REPAIRED_RESPONSE_NOTICE,
    StoryValidator,
)


@pytest.mark.unit
class TestStrictValidation:
    """엄격한 형식 검증"""

    def test_valid_payload_passes_unchanged(self, valid_story_payload):
        result = StoryValidator.validate_story_response(valid_story_payload)

        assert result.success
        assert result.errors == []
        assert result.data.story_text == valid_story_payload["storyText"]
        assert [c.id for c in result.data.choices] == ["A", "B", "C"]
        assert result.data.game_state.personality_traits.creativity == 60

    def test_validated_output_validates_again(self, valid_story_payload):
        first = StoryValidator.validate_and_repair_story_response(valid_story_payload)
        dumped = first.data.model_dump(by_alias=True)
        second = StoryValidator.validate_and_repair_story_response(dumped)

        assert second.success
        assert second.errors == []
        assert second.data == first.data

    def test_snake_case_keys_accepted(self, valid_story_payload):
        payload = {
            "story_text": valid_story_payload["storyText"],
            "choices": valid_story_payload["choices"],
            "game_state": valid_story_payload["gameState"],
            "is_ending": False
        }
        result = StoryValidator.validate_story_response(payload)
        assert result.success

    def test_ending_fields(self, valid_story_payload):
        valid_story_payload["isEnding"] = True
        valid_story_payload["endingType"] = "heroic"
        valid_story_payload["endingTag"] = "heroic_sacrifice"

        result = StoryValidator.validate_story_response(valid_story_payload)
        assert result.success
        assert result.data.ending_type == "heroic"

    def test_unknown_ending_type_rejected(self, valid_story_payload):
        valid_story_payload["endingType"] = "comedic"
        result = StoryValidator.validate_story_response(valid_story_payload)
        assert not result.success

    def test_string_for_number_is_not_coerced(self, valid_story_payload):
        valid_story_payload["gameState"]["act"] = "1"
        result = StoryValidator.validate_story_response(valid_story_payload)

        assert not result.success
        assert result.can_retry

    def test_out_of_range_trait_not_retryable(self, valid_story_payload):
        valid_story_payload["gameState"]["personalityTraits"]["riskTaking"] = 150
        result = StoryValidator.validate_and_repair_story_response(valid_story_payload)

        assert not result.success
        assert not result.can_retry

    def test_non_object_payload(self):
        result = StoryValidator.validate_and_repair_story_response("not a story")
        assert not result.success
        assert result.can_retry


@pytest.mark.unit
class TestChoiceRepair:
    """선택지 배열 검증과 복구"""

    def test_missing_id_repaired_with_positional_letter(self, valid_story_payload):
        del valid_story_payload["choices"][1]["id"]
        result = StoryValidator.validate_and_repair_story_response(valid_story_payload)

        assert result.success
        assert result.data.choices[1].id == "B"
        assert REPAIRED_RESPONSE_NOTICE in result.errors
        assert "Choice 2 was repaired" in result.errors

    def test_repair_does_not_touch_input(self, valid_story_payload):
        del valid_story_payload["choices"][0]["slug"]
        original = copy.deepcopy(valid_story_payload)

        StoryValidator.validate_and_repair_story_response(valid_story_payload)
        assert valid_story_payload == original

    def test_too_few_choices_never_repaired(self, valid_story_payload):
        valid_story_payload["choices"] = valid_story_payload["choices"][:1]
        result = StoryValidator.validate_and_repair_story_response(valid_story_payload)

        assert not result.success
        assert not result.can_retry

    def test_too_many_choices_never_repaired(self, valid_story_payload):
        extra = [{"id": x, "text": f"Option {x}", "slug": f"option_{x.lower()}"} for x in "DE"]
        valid_story_payload["choices"] += extra
        result = StoryValidator.validate_and_repair_story_response(valid_story_payload)

        assert not result.success
        assert not result.can_retry

    def test_validate_choices_count_error(self):
        result = StoryValidator.validate_choices([{"id": "A", "text": "Only", "slug": "only"}])

        assert not result.success
        assert result.errors == ["Expected 2-4 choices, got 1"]
        assert not result.can_retry

    def test_validate_choices_not_a_list(self):
        result = StoryValidator.validate_choices({"id": "A"})

        assert not result.success
        assert result.errors == ["Choices must be an array"]
        assert result.can_retry

    def test_unrepairable_choice_dropped_when_two_remain(self):
        choices = [
            {"id": "A", "text": "Go left", "slug": "go_left"},
            {"id": "B", "text": "Go right", "slug": "go_right"},
            "not a choice"
        ]
        result = StoryValidator.validate_choices(choices)

        assert result.success
        assert len(result.data) == 2
        assert result.errors[0].startswith("Choice 3:")

    def test_repair_choice_uses_alternate_keys(self):
        choice = StoryValidator.repair_choice({"option_id": "X", "description": "Go left"}, 0)

        assert choice.id == "X"
        assert choice.text == "Go left"
        assert choice.slug == "choice_1"

    def test_repair_choice_placeholders(self):
        choice = StoryValidator.repair_choice({}, 2)

        assert choice.id == "C"
        assert choice.text == "Choice 3"
        assert choice.slug == "choice_3"

    def test_repair_choice_non_object(self):
        assert StoryValidator.repair_choice("A", 0) is None


@pytest.mark.unit
class TestGameStateRepair:
    """게임 상태 기본값과 범위 제한"""

    def test_empty_game_state_repaired(self, valid_story_payload):
        valid_story_payload["gameState"] = {}
        result = StoryValidator.validate_and_repair_story_response(valid_story_payload)

        assert result.success
        state = result.data.game_state
        assert state.act == 1
        assert state.flags == []
        assert state.relationships == {}
        assert state.inventory == []
        assert state.personality_traits.empathy == 50
        assert REPAIRED_GAME_STATE_NOTICE in result.errors

    def test_string_act_repaired(self, valid_story_payload):
        valid_story_payload["gameState"]["act"] = "2"
        result = StoryValidator.validate_and_repair_story_response(valid_story_payload)

        assert result.success
        assert result.data.game_state.act == 1
        assert result.data.game_state.flags == ["story_started"]

    def test_traits_clamped(self):
        state = StoryValidator.repair_game_state({
            "act": 2,
            "personality_traits": {"risk_taking": 150, "empathy": -5, "creativity": "high"}
        })

        assert state.act == 2
        assert state.personality_traits.risk_taking == 100
        assert state.personality_traits.empathy == 0
        assert state.personality_traits.creativity == 50

    def test_non_object_game_state(self):
        assert StoryValidator.repair_game_state(None) is None
        assert not StoryValidator.validate_game_state([1, 2]).success


@pytest.mark.unit
class TestErrorClassification:
    """재시도 가능 오류 분류"""

    def test_missing_field_is_retryable(self):
        assert StoryValidator.is_retryable_error([{"type": "missing", "msg": "Field required"}])

    def test_type_message_is_retryable(self):
        assert StoryValidator.is_retryable_error([{"type": "custom", "msg": "Input should be a valid integer"}])

    def test_length_error_is_not_retryable(self):
        issues = [{"type": "too_short", "msg": "List should have at least 2 items after validation, not 1"}]
        assert not StoryValidator.is_retryable_error(issues)

    def test_format_errors_with_path(self):
        issues = [
            {"loc": ("choices", 0, "id"), "msg": "Field required"},
            {"loc": (), "msg": "Input should be an object"}
        ]
        assert StoryValidator.format_errors(issues) == [
            "choices.0.id: Field required",
            "Input should be an object"
        ]
