"""
엔딩 감지 / 분류 테스트
"""
import random
import pytest

from models.story_models import GameState
from utils.endings import (
    calculate_ending_rarity,
    classify_category,
    classify_ending,
    classify_rarity,
    detect_ending,
    generate_ending_tag,
    get_ending_templates,
    is_ending_reached,
)


def make_state(game_state_payload, **overrides):
    payload = dict(game_state_payload)
    traits = overrides.pop("traits", None)
    if traits:
        payload["personalityTraits"] = dict(payload["personalityTraits"], **traits)
    payload.update(overrides)
    return GameState.model_validate(payload)


@pytest.mark.unit
class TestEndingDetection:
    """엔딩 여부 판단"""

    def test_keyword_ends_story(self, game_state_payload):
        state = make_state(game_state_payload)
        assert is_ending_reached("At last the gates of the city open before you.", state, "standard")

    def test_plain_segment_is_not_ending(self, game_state_payload):
        state = make_state(game_state_payload, act=3)
        assert not is_ending_reached("You walk along the river.", state, "standard")

    def test_resolution_flag_needs_third_act(self, game_state_payload):
        text = "You walk along the river."
        early = make_state(game_state_payload, act=2, flags=["story_started", "curse_resolved"])
        late = make_state(game_state_payload, act=3, flags=["story_started", "curse_resolved"])

        assert not is_ending_reached(text, early, "standard")
        assert is_ending_reached(text, late, "standard")

    def test_quick_story_ends_in_second_act(self, game_state_payload):
        state = make_state(game_state_payload, act=2, flags=["story_started", "case_solved"])
        assert is_ending_reached("You walk along the river.", state, "quick")

    def test_detect_returns_none_without_ending(self, game_state_payload):
        state = make_state(game_state_payload)
        assert detect_ending("You walk along the river.", state, "fantasy", "standard") is None


@pytest.mark.unit
class TestEndingClassification:
    """카테고리, 희귀도, 태그"""

    def test_categories(self, game_state_payload):
        state = make_state(game_state_payload)

        assert classify_category("Victory and peace return to the valley.", state, "fantasy") == "heroic"
        assert classify_category("Only sorrow and loss remain.", state, "fantasy") == "tragic"
        assert classify_category("The stranger vanished into the fog.", state, "fantasy") == "mysterious"
        assert classify_category("You walk home.", state, "mystery") == "mysterious"
        assert classify_category("You walk home.", state, "fantasy") == "bittersweet"

    def test_triumphant_needs_leader_and_allies(self, game_state_payload):
        state = make_state(game_state_payload, traits={"leadership": 75},
                           relationships={"guide": 90, "smith": 85, "queen": 95})
        assert classify_category("Victory at the gates.", state, "fantasy") == "triumphant"

    def test_rarity(self, game_state_payload):
        assert classify_rarity(make_state(game_state_payload)) == "common"
        assert classify_rarity(make_state(game_state_payload, traits={"empathy": 85})) == "uncommon"
        assert classify_rarity(make_state(
            game_state_payload, relationships={"a": 50, "b": 50, "c": 50, "d": 50}
        )) == "uncommon"
        assert classify_rarity(make_state(game_state_payload, flags=["secret_door"])) == "rare"
        assert classify_rarity(make_state(
            game_state_payload, flags=["secret_door", "hidden_path", "rare_gem"]
        )) == "ultra-rare"

    def test_ending_tags(self, game_state_payload):
        assert generate_ending_tag(make_state(game_state_payload), "fantasy") == "fantasy_creativity_path"
        assert generate_ending_tag(
            make_state(game_state_payload, flags=["betrayed_by_guide", "made_sacrifice"]), "sci-fi"
        ) == "sci-fi_noble_sacrifice"
        assert generate_ending_tag(
            make_state(game_state_payload, flags=["forged_alliance"]), "mystery"
        ) == "mystery_united_front"

    def test_classification_fills_templates(self, game_state_payload):
        state = make_state(game_state_payload)
        ending = classify_ending("Victory and peace return.", state, "fantasy", random.Random(3))

        assert ending.category == "heroic"
        assert ending.rarity == "common"
        assert ending.ending_tag == "fantasy_creativity_path"
        assert ending.title in {"The Innovative Champion", "Savior of the Realm"}
        assert "{trait}" not in ending.description

    def test_genres_without_templates_use_fantasy(self):
        assert get_ending_templates("horror", "tragic") == get_ending_templates("fantasy", "tragic")

    def test_detect_classifies(self, game_state_payload):
        state = make_state(game_state_payload)
        ending = detect_ending("Years later, the mystery is still told.", state, "mystery", "quick")

        assert ending is not None
        assert ending.category == "mysterious"
        assert ending.ending_tag.startswith("mystery_")

    def test_rarity_from_completion_share(self):
        assert calculate_ending_rarity(0, 0) == "common"
        assert calculate_ending_rarity(100, 1) == "ultra-rare"
        assert calculate_ending_rarity(100, 5) == "rare"
        assert calculate_ending_rarity(100, 20) == "uncommon"
        assert calculate_ending_rarity(100, 40) == "common"
