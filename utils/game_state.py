"""
게임 상태 유틸 (모든 함수는 새 GameState 반환)
"""

import logging
from typing import Dict, List

from models.story_models import DEFAULT_TRAIT_VALUE, TRAIT_NAMES, GameState, PersonalityTraits

logger = logging.getLogger(__name__)

GENRE_TRAIT_MODIFIERS = {
    "fantasy": {"creativity": 5, "empathy": 3},
    "mystery": {"pragmatism": 5, "creativity": 3},
    "sci-fi": {"pragmatism": 3, "leadership": 5},
    "horror": {"riskTaking": 3, "pragmatism": 3},
    "romance": {"empathy": 5, "creativity": 3},
    "thriller": {"riskTaking": 5, "leadership": 3},
}


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def traits_to_dict(traits: PersonalityTraits) -> Dict[str, int]:
    return traits.model_dump(by_alias=True)


def create_initial_game_state(genre: str) -> GameState:
    traits = {name: DEFAULT_TRAIT_VALUE for name in TRAIT_NAMES}
    for trait, modifier in GENRE_TRAIT_MODIFIERS.get(genre, {}).items():
        traits[trait] += modifier

    return GameState.model_validate({
        "act": 1,
        "flags": ["story_started", f"genre_{genre}"],
        "relationships": {},
        "inventory": [],
        "personalityTraits": traits,
    })


def update_personality_traits(traits: PersonalityTraits, impact: Dict[str, int]) -> PersonalityTraits:
    """성향 변화량 적용, 0~100 범위 유지 (모르는 성향은 무시)"""
    updated = traits_to_dict(traits)
    for trait, change in impact.items():
        if trait in updated:
            updated[trait] = _clamp(updated[trait] + change, 0, 100)
    return PersonalityTraits.model_validate(updated)


def add_flag(state: GameState, flag: str) -> GameState:
    if flag in state.flags:
        return state
    return state.model_copy(update={"flags": state.flags + [flag]})


def set_relationship(state: GameState, character: str, value: int) -> GameState:
    relationships = dict(state.relationships)
    relationships[character] = _clamp(value, -100, 100)
    return state.model_copy(update={"relationships": relationships})


def modify_relationship(state: GameState, character: str, change: int) -> GameState:
    return set_relationship(state, character, state.relationships.get(character, 0) + change)


def add_item(state: GameState, item: str) -> GameState:
    if item in state.inventory:
        return state
    return state.model_copy(update={"inventory": state.inventory + [item]})


def remove_item(state: GameState, item: str) -> GameState:
    return state.model_copy(update={"inventory": [i for i in state.inventory if i != item]})


def _parse_int(value: str) -> int:
    try:
        return int(value)
    except ValueError:
        return 0


def apply_consequence(state: GameState, consequence: str) -> GameState:
    """결과 문자열 하나 적용 ("action:param[:value]")"""
    action, *params = consequence.split(":")

    if action == "add_flag" and params:
        return add_flag(state, params[0])
    if action == "set_relationship" and len(params) >= 2:
        return set_relationship(state, params[0], _parse_int(params[1]))
    if action == "modify_relationship" and len(params) >= 2:
        return modify_relationship(state, params[0], _parse_int(params[1]))
    if action == "add_item" and params:
        return add_item(state, params[0])
    if action == "remove_item" and params:
        return remove_item(state, params[0])
    if action == "increment_act":
        return state.model_copy(update={"act": state.act + 1})

    logger.warning("알 수 없는 결과 액션: %s", action)
    return state


def apply_consequences(state: GameState, consequences: List[str]) -> GameState:
    for consequence in consequences:
        state = apply_consequence(state, consequence)
    return state


def merge_game_state(previous: GameState, generated: GameState) -> GameState:
    """생성된 상태를 기존 상태에 병합 (플래그는 삭제되지 않음)"""
    flags = list(previous.flags)
    for flag in generated.flags:
        if flag not in flags:
            flags.append(flag)

    return generated.model_copy(update={
        "act": max(previous.act, generated.act),
        "flags": flags,
    })
