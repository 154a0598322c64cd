"""
요청 모델 정의
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Optional

from models.story_models import Challenge, GameState, Genre, StoryLength


class GenerationRequest(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    genre: Genre = Field(..., description="Story genre")
    length: StoryLength = Field(..., description="Story length")
    challenge: Challenge = Field(..., description="Challenge level")
    session_id: str = Field(..., min_length=1, max_length=64, alias="sessionId", description="Guest session id")
    user_id: Optional[str] = Field(None, alias="userId", description="Authenticated user id")
    current_step: Optional[int] = Field(None, ge=1, alias="currentStep", description="Step being generated")
    game_state: Optional[GameState] = Field(None, alias="gameState", description="Game state so far")
    previous_choice: Optional[str] = Field(None, max_length=500, alias="previousChoice", description="Previous choice text")

    @property
    def is_guest(self) -> bool:
        return not self.user_id

    @property
    def requester_id(self) -> str:
        return self.user_id or self.session_id

    @property
    def is_continuation(self) -> bool:
        return bool(self.current_step and self.game_state)


class StoryValidationRequest(BaseModel):
    story_data: Any = Field(..., description="Raw story payload to validate")
    repair: bool = Field(True, description="Attempt structural repair")
