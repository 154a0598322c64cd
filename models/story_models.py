"""
스토리 데이터 모델 (생성 콘텐츠의 엄격한 형식)
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Dict, List, Literal, Optional

Genre = Literal["fantasy", "mystery", "sci-fi", "horror", "romance", "thriller"]
StoryLength = Literal["quick", "standard", "extended"]
Challenge = Literal["casual", "challenging"]
EndingType = Literal["heroic", "tragic", "mysterious", "triumphant", "bittersweet"]
RarityLevel = Literal["common", "uncommon", "rare", "ultra-rare"]

GENRES = ["fantasy", "mystery", "sci-fi", "horror", "romance", "thriller"]
PREMIUM_GENRES = ["horror", "romance", "thriller"]
PREMIUM_LENGTHS = ["extended"]
TRAIT_NAMES = ["riskTaking", "empathy", "pragmatism", "creativity", "leadership"]
DEFAULT_TRAIT_VALUE = 50

CHOICE_TEXT_MAX_LENGTH = 500
STORY_TEXT_MAX_LENGTH = 5000
ENDING_TAG_MAX_LENGTH = 100


class StoryModel(BaseModel):
    """AI 생성 콘텐츠 기본 모델 (엄격한 타입, camelCase 필드명)"""
    model_config = ConfigDict(
        strict=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )


class PersonalityTraits(StoryModel):
    risk_taking: int = Field(..., ge=0, le=100, description="Risk taking")
    empathy: int = Field(..., ge=0, le=100, description="Empathy")
    pragmatism: int = Field(..., ge=0, le=100, description="Pragmatism")
    creativity: int = Field(..., ge=0, le=100, description="Creativity")
    leadership: int = Field(..., ge=0, le=100, description="Leadership")


class GameState(StoryModel):
    act: int = Field(..., ge=1, description="Current act")
    flags: List[str] = Field(..., description="Story flags (append-only)")
    relationships: Dict[str, int] = Field(..., description="Relationship scores")
    inventory: List[str] = Field(..., description="Inventory items")
    personality_traits: PersonalityTraits = Field(..., description="Personality traits")


class Choice(StoryModel):
    id: str = Field(..., min_length=1, max_length=8, description="Choice id (A-D)")
    text: str = Field(..., min_length=1, max_length=CHOICE_TEXT_MAX_LENGTH, description="Choice text")
    slug: str = Field(..., min_length=1, max_length=100, description="Stable choice key")
    consequences: Optional[List[str]] = Field(None, description="Consequence strings")
    traits_impact: Optional[Dict[str, int]] = Field(
        None, alias="traits_impact", description="Trait deltas"
    )


class StoryResponse(StoryModel):
    story_text: str = Field(..., min_length=1, max_length=STORY_TEXT_MAX_LENGTH, description="Story segment")
    choices: List[Choice] = Field(..., min_length=2, max_length=4, description="2-4 choices")
    game_state: GameState = Field(..., description="Game state after this segment")
    is_ending: bool = Field(..., description="Whether this segment ends the story")
    ending_type: Optional[EndingType] = Field(None, description="Ending type")
    ending_tag: Optional[str] = Field(None, max_length=ENDING_TAG_MAX_LENGTH, description="Ending tag")
