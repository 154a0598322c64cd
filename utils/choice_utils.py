"""
선택지 slug, 결정 키, 희귀도
"""

import hashlib
import re
from typing import Optional

VALID_CHOICE_IDS = ["A", "B", "C", "D"]


def generate_choice_slug(choice_text: str) -> str:
    """선택지 텍스트로 snake_case slug 생성"""
    slug = re.sub(r"[^a-z0-9\s]", "", choice_text.lower()).strip()
    slug = re.sub(r"\s+", "_", slug)[:50]
    return slug or "choice"


def generate_decision_key_hash(genre: str, act: int, story_context: str, choice_text: str) -> str:
    """장르 / 막 / 장면 기준 8자리 해시 (같은 slug라도 장면이 다르면 다른 키)"""
    context = f"{genre}:{act}:{story_context}:{choice_text}"
    return hashlib.sha256(context.encode("utf-8")).hexdigest()[:8]


def generate_contextual_choice_slug(choice_text: str, genre: str, act: int, story_context: str = "") -> str:
    base = generate_choice_slug(choice_text)
    return f"{base}_{generate_decision_key_hash(genre, act, story_context, choice_text)[:4]}"


def normalize_choice_id(choice_id: Optional[str], index: int) -> str:
    if choice_id and choice_id.upper() in VALID_CHOICE_IDS:
        return choice_id.upper()
    if index < len(VALID_CHOICE_IDS):
        return VALID_CHOICE_IDS[index]
    return VALID_CHOICE_IDS[0]


def extract_story_context(story_text: str) -> str:
    """의미 있는 첫 다섯 단어 (결정 해시의 장면 키)"""
    words = re.sub(r"[^a-z\s]", "", story_text.lower()).split()
    return "_".join([w for w in words if len(w) > 3][:5])


def calculate_choice_rarity(percentage: float) -> str:
    if percentage >= 50:
        return "common"
    if percentage >= 25:
        return "uncommon"
    if percentage >= 10:
        return "rare"
    return "ultra-rare"
