"""
엔딩 감지 / 분류 (카테고리, 희귀도, 엔딩 태그, 제목)
"""

import logging
import random
from typing import Dict, List, Optional

from models.response_models import EndingClassification
from models.story_models import TRAIT_NAMES, GameState
from utils.game_state import traits_to_dict

logger = logging.getLogger(__name__)

ENDING_KEYWORDS = [
    "the end", "finally", "at last", "years later", "epilogue",
    "concluded", "finished", "completed", "resolution", "farewell",
]
RESOLUTION_FLAG_MARKERS = ["resolved", "concluded", "ended", "complete", "defeated", "solved"]
RARE_FLAG_MARKERS = ["rare", "secret", "hidden"]

POSITIVE_WORDS = ["victory", "triumph", "success", "joy", "happiness", "peace", "saved", "rescued"]
NEGATIVE_WORDS = ["defeat", "death", "loss", "tragedy", "sorrow", "failed", "destroyed", "betrayed"]
MYSTERIOUS_WORDS = ["mystery", "unknown", "vanished", "disappeared", "enigma", "puzzle", "secret"]

TRAIT_TITLES = {
    "riskTaking": "Bold",
    "empathy": "Compassionate",
    "pragmatism": "Practical",
    "creativity": "Innovative",
    "leadership": "Commanding",
}

ENDING_TEMPLATES: Dict[str, Dict[str, List[Dict[str, str]]]] = {
    "fantasy": {
        "heroic": [
            {"title": "The {trait} Champion", "description": "Your {trait} nature led you to become a legendary hero."},
            {"title": "Savior of the Realm", "description": "Through courage and wisdom, you saved the kingdom."},
        ],
        "tragic": [
            {"title": "The Fallen Hero", "description": "Despite your best efforts, darkness prevailed."},
            {"title": "Noble Sacrifice", "description": "Your sacrifice saved others, though at great cost."},
        ],
        "triumphant": [
            {"title": "Master of Destiny", "description": "You shaped the fate of the realm through your choices."},
            {"title": "The Crowned Victor", "description": "Your leadership united all under your banner."},
        ],
        "mysterious": [
            {"title": "The Enigmatic Path", "description": "Your journey ended in mystery, leaving questions unanswered."},
            {"title": "Keeper of Secrets", "description": "You discovered truths that changed everything."},
        ],
        "bittersweet": [
            {"title": "The Price of Victory", "description": "You won, but at a cost that will haunt you."},
            {"title": "Pyrrhic Triumph", "description": "Success came with unexpected consequences."},
        ],
    },
    "mystery": {
        "heroic": [
            {"title": "The Truth Seeker", "description": "Your {trait} approach uncovered the truth."},
            {"title": "Detective's Vindication", "description": "Justice was served through your investigation."},
        ],
        "tragic": [
            {"title": "The Unsolved Case", "description": "Some mysteries are too dark to fully unravel."},
            {"title": "Truth's Heavy Price", "description": "The truth you sought came at a terrible cost."},
        ],
        "triumphant": [
            {"title": "Master Detective", "description": "You solved the impossible case through brilliant deduction."},
            {"title": "Justice Served", "description": "Your investigation brought criminals to justice."},
        ],
        "mysterious": [
            {"title": "The Deeper Mystery", "description": "Solving one mystery only revealed a greater enigma."},
            {"title": "Questions Remain", "description": "Some answers only lead to more questions."},
        ],
        "bittersweet": [
            {"title": "Hollow Victory", "description": "You solved the case, but lost something precious."},
            {"title": "The Cost of Truth", "description": "Knowledge came with a price you didn't expect."},
        ],
    },
    "sci-fi": {
        "heroic": [
            {"title": "Savior of Worlds", "description": "Your {trait} choices saved countless lives."},
            {"title": "The New Pioneer", "description": "You opened new frontiers for humanity."},
        ],
        "tragic": [
            {"title": "The Last Stand", "description": "You fought bravely, but the future remains uncertain."},
            {"title": "Sacrifice for Tomorrow", "description": "Your sacrifice ensured humanity's survival."},
        ],
        "triumphant": [
            {"title": "Architect of the Future", "description": "You shaped humanity's destiny among the stars."},
            {"title": "The Unified Galaxy", "description": "Your leadership brought peace to the cosmos."},
        ],
        "mysterious": [
            {"title": "Beyond Understanding", "description": "You encountered something beyond human comprehension."},
            {"title": "The Unknown Variable", "description": "Your journey revealed mysteries science cannot explain."},
        ],
        "bittersweet": [
            {"title": "Progress's Price", "description": "Advancement came with unexpected consequences."},
            {"title": "The Human Cost", "description": "Technology's promise carried a hidden price."},
        ],
    },
}


def _count_words(text: str, words: List[str]) -> int:
    return sum(1 for word in words if word in text)


def _has_marker(flags: List[str], markers: List[str]) -> bool:
    return any(marker in flag for flag in flags for marker in markers)


def dominant_trait(state: GameState) -> str:
    """가장 높은 성향 (동점이면 TRAIT_NAMES 순서상 앞쪽)"""
    traits = traits_to_dict(state.personality_traits)
    return max(TRAIT_NAMES, key=lambda name: traits[name])


def is_ending_reached(story_text: str, state: GameState, length: str) -> bool:
    """엔딩 키워드가 있거나, 충분히 진행된 상태에서 해결 플래그가 있으면 엔딩"""
    if _count_words(story_text.lower(), ENDING_KEYWORDS) > 0:
        return True

    long_enough = state.act >= 3 or (length == "quick" and state.act >= 2)
    return long_enough and _has_marker(state.flags, RESOLUTION_FLAG_MARKERS)


def generate_ending_tag(state: GameState, genre: str) -> str:
    flags = state.flags
    if _has_marker(flags, ["sacrifice"]):
        suffix = "noble_sacrifice"
    elif _has_marker(flags, ["betrayed"]):
        suffix = "betrayed_trust"
    elif _has_marker(flags, ["alliance"]):
        suffix = "united_front"
    elif _has_marker(flags, ["secret"]):
        suffix = "hidden_truth"
    else:
        suffix = f"{dominant_trait(state)}_path"
    return f"{genre}_{suffix}"


def classify_category(story_text: str, state: GameState, genre: str) -> str:
    text = story_text.lower()
    positive = _count_words(text, POSITIVE_WORDS)
    negative = _count_words(text, NEGATIVE_WORDS)
    mysterious = _count_words(text, MYSTERIOUS_WORDS)

    if positive > negative and positive > mysterious:
        high_relationships = sum(1 for value in state.relationships.values() if value > 80)
        if state.personality_traits.leadership > 70 and high_relationships > 2:
            return "triumphant"
        return "heroic"
    if negative > positive:
        return "tragic"
    if mysterious > 0 or genre == "mystery":
        return "mysterious"
    return "bittersweet"


def classify_rarity(state: GameState) -> str:
    """플래그, 관계, 성향 조건으로 엔딩 희귀도 결정"""
    traits = state.personality_traits
    rare_flags = sum(1 for flag in state.flags if any(marker in flag for marker in RARE_FLAG_MARKERS))
    values = list(state.relationships.values())
    high_relationships = sum(1 for value in values if value > 80)
    low_relationships = sum(1 for value in values if value < 20)

    if rare_flags > 2 or (traits.risk_taking > 70 and traits.creativity > 70 and high_relationships > 3):
        return "ultra-rare"
    if rare_flags > 0 or high_relationships > 2 or low_relationships > 2:
        return "rare"
    if len(values) > 3 or any(value > 80 for value in traits_to_dict(traits).values()):
        return "uncommon"
    return "common"


def get_ending_templates(genre: str, category: str) -> List[Dict[str, str]]:
    # 템플릿이 없는 장르는 판타지 문구 사용
    return ENDING_TEMPLATES.get(genre, ENDING_TEMPLATES["fantasy"])[category]


def classify_ending(story_text: str, state: GameState, genre: str,
                    rng: Optional[random.Random] = None) -> EndingClassification:
    category = classify_category(story_text, state, genre)
    trait_title = TRAIT_TITLES.get(dominant_trait(state), "Determined")
    template = (rng or random).choice(get_ending_templates(genre, category))

    return EndingClassification(
        ending_tag=generate_ending_tag(state, genre),
        title=template["title"].replace("{trait}", trait_title).replace("{genre}", genre),
        description=template["description"].replace("{trait}", trait_title),
        rarity=classify_rarity(state),
        category=category,
    )


def detect_ending(story_text: str, state: GameState, genre: str, length: str,
                  rng: Optional[random.Random] = None) -> Optional[EndingClassification]:
    """엔딩이면 분류 결과, 아니면 None"""
    if not is_ending_reached(story_text, state, length):
        return None
    classification = classify_ending(story_text, state, genre, rng)
    logger.info("엔딩 감지: %s (%s, %s)", classification.ending_tag,
                classification.category, classification.rarity)
    return classification


def calculate_ending_rarity(total_completions: int, ending_completions: int) -> str:
    """전체 완료 대비 해당 엔딩 비율로 희귀도 산정"""
    if total_completions <= 0:
        return "common"

    percentage = ending_completions / total_completions * 100
    if percentage < 2:
        return "ultra-rare"
    if percentage < 10:
        return "rare"
    if percentage < 25:
        return "uncommon"
    return "common"
