"""
생성된 스토리 텍스트 콘텐츠 안전 필터
"""

import re
from typing import List, Optional, Tuple

from models.story_models import CHOICE_TEXT_MAX_LENGTH, STORY_TEXT_MAX_LENGTH, StoryResponse

COMMON_FILTERS: List[Tuple[re.Pattern, str]] = [
    (re.compile(r"\b(kill|murder|assassinate)\b", re.IGNORECASE), "defeat"),
    (re.compile(r"\b(blood|gore|brutal)\b", re.IGNORECASE), "intense"),
    (re.compile(r"\b(torture|torment)\b", re.IGNORECASE), "interrogate"),
    (re.compile(r"\b(damn|hell)\b", re.IGNORECASE), "darn"),
]

# casual 난이도 전용
STRICT_FILTERS: List[Tuple[re.Pattern, str]] = [
    (re.compile(r"\b(death|die|dying)\b", re.IGNORECASE), "defeat"),
    (re.compile(r"\b(attack|assault)\b", re.IGNORECASE), "confront"),
    (re.compile(r"\b(weapon|sword|knife)\b", re.IGNORECASE), "tool"),
    (re.compile(r"\b(fight|battle)\b", re.IGNORECASE), "challenge"),
]

PROHIBITED_PATTERNS = [
    re.compile(r"\b(suicide|self-harm)\b", re.IGNORECASE),
    re.compile(r"\b(explicit|graphic|nsfw)\b", re.IGNORECASE),
    re.compile(r"\b(hate|racism|discrimination)\b", re.IGNORECASE),
    re.compile(r"\b(drugs|narcotics|addiction)\b", re.IGNORECASE),
]


def get_safety_level(challenge: str) -> str:
    return "strict" if challenge == "casual" else "moderate"


def filter_content(text: str, safety_level: str, max_length: Optional[int] = None) -> str:
    """단어 치환 필터 적용, 치환으로 길어진 텍스트는 max_length에서 자름"""
    filters = COMMON_FILTERS + STRICT_FILTERS if safety_level == "strict" else COMMON_FILTERS
    for pattern, replacement in filters:
        text = pattern.sub(replacement, text)
    if max_length is not None and len(text) > max_length:
        text = text[:max_length]
    return text


def apply_content_safety_filter(story: StoryResponse, challenge: str) -> StoryResponse:
    """난이도별 필터를 본문과 선택지에 적용 (필드 길이 제한 유지)"""
    level = get_safety_level(challenge)
    choices = [
        choice.model_copy(update={
            "text": filter_content(choice.text, level, CHOICE_TEXT_MAX_LENGTH),
            "consequences": (
                [filter_content(c, level) for c in choice.consequences]
                if choice.consequences is not None else None
            ),
        })
        for choice in story.choices
    ]
    return story.model_copy(update={
        "story_text": filter_content(story.story_text, level, STORY_TEXT_MAX_LENGTH),
        "choices": choices,
    })


def contains_prohibited_content(text: str) -> bool:
    return any(pattern.search(text) for pattern in PROHIBITED_PATTERNS)


def validate_content_safety(story: StoryResponse) -> bool:
    """금지 콘텐츠가 하나라도 있으면 False"""
    if contains_prohibited_content(story.story_text):
        return False
    for choice in story.choices:
        if contains_prohibited_content(choice.text):
            return False
        if any(contains_prohibited_content(c) for c in choice.consequences or []):
            return False
    return True
