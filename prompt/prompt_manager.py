"""
스토리 프롬프트 관리 (장르별 시스템 프롬프트, 재시도용 JSON 지침, 사용자 프롬프트)
"""

import json
from dataclasses import dataclass
from typing import Any, Dict

from models.request_models import GenerationRequest
from models.story_models import GENRES

GENRE_PROMPTS = {
    "fantasy": (
        "You are a master storyteller creating immersive fantasy adventures. Your stories feature:\n"
        "- Rich magical worlds with detailed lore\n"
        "- Compelling characters with clear motivations\n"
        "- Meaningful choices that impact relationships and story outcomes",
        "Complex moral dilemmas and strategic decisions",
        "Clear heroic choices and straightforward conflicts",
    ),
    "mystery": (
        "You are a skilled mystery writer crafting engaging detective stories. Your stories feature:\n"
        "- Intriguing puzzles and clues for the reader to discover\n"
        "- Suspicious characters with hidden motives\n"
        "- Red herrings and plot twists that surprise but make sense",
        "Complex investigations requiring careful deduction",
        "Clear clues and logical progression",
    ),
    "sci-fi": (
        "You are a visionary science fiction author creating thought-provoking futures. Your stories feature:\n"
        "- Innovative technology and its impact on society\n"
        "- Exploration of human nature in extraordinary circumstances\n"
        "- Ethical dilemmas posed by scientific advancement",
        "Complex philosophical questions and hard choices",
        "Clear conflicts between progress and humanity",
    ),
    "horror": (
        "You are a master of psychological horror creating spine-chilling narratives. Your stories feature:\n"
        "- Building tension and atmospheric dread\n"
        "- Supernatural or unexplained phenomena\n"
        "- Characters facing their deepest fears",
        "Complex psychological horror and moral ambiguity",
        "Classic horror tropes with clear threats",
    ),
    "romance": (
        "You are a skilled romance writer creating emotionally engaging love stories. Your stories feature:\n"
        "- Deep emotional connections between characters\n"
        "- Relationship development and romantic tension\n"
        "- Meaningful relationship choices and consequences",
        "Complex relationship dynamics and emotional dilemmas",
        "Clear romantic progression and heartwarming moments",
    ),
    "thriller": (
        "You are an expert thriller writer creating high-stakes suspense stories. Your stories feature:\n"
        "- Fast-paced action and mounting tension\n"
        "- Conspiracy, betrayal, and hidden agendas\n"
        "- Characters under extreme pressure",
        "Complex conspiracies and morally ambiguous choices",
        "Clear threats and heroic action sequences",
    ),
}

RESPONSE_SCHEMA = """{
  "story_text": "string (200-400 words)",
  "choices": [
    {
      "id": "A",
      "text": "string (10-50 words)",
      "slug": "string (snake_case identifier like 'trust_stranger')",
      "consequences": ["string array (optional)"],
      "traits_impact": {"trait_name": number} (optional, -2 to +2)
    }
  ],
  "game_state": {
    "act": number (1-3),
    "flags": ["string array"],
    "relationships": {"character_name": number},
    "inventory": ["string array"],
    "personality_traits": {"riskTaking": number, "empathy": number, "pragmatism": number, "creativity": number, "leadership": number}
  },
  "is_ending": boolean,
  "ending_type": "heroic|tragic|mysterious|triumphant|bittersweet (if is_ending is true)",
  "ending_tag": "string (if is_ending is true, snake_case like 'heroic_sacrifice')"
}"""

STRICT_JSON_INSTRUCTIONS = """

STRICT JSON FORMATTING (Previous attempt failed):
- Use double quotes for all strings
- No trailing commas
- No comments in JSON
- Ensure all required fields are present
- If unsure, use simpler values but keep the exact schema"""

LENGTH_GUIDANCE = {
    "quick": ("Moves toward conclusion (aim for 4-6 total steps)", "Set up for a 4-6 step story"),
    "standard": ("Develops the story further (aim for 8-12 total steps)", "Set up for an 8-12 step story"),
    "extended": ("Develops the story with rich detail (aim for 12-18 total steps)",
                 "Set up for a 12-18 step immersive story"),
}


@dataclass
class PromptTemplate:
    system_prompt: str
    user_prompt: str

    def combined(self) -> str:
        return f"{self.system_prompt}\n\n{self.user_prompt}\n\nPlease respond with valid JSON only."


class PromptManager:
    """장르 / 난이도 / 시도 횟수별 프롬프트 생성"""

    def get_prompt(self, request: GenerationRequest, attempt: int = 1) -> PromptTemplate:
        system_prompt = self.get_system_prompt(request.genre, request.challenge)
        if attempt > 1:
            system_prompt += STRICT_JSON_INSTRUCTIONS
        return PromptTemplate(system_prompt=system_prompt, user_prompt=self.get_user_prompt(request))

    def get_system_prompt(self, genre: str, challenge: str) -> str:
        intro, challenging, casual = GENRE_PROMPTS.get(genre, GENRE_PROMPTS["fantasy"])
        tone = challenging if challenge == "challenging" else casual

        return f"""{intro}
- {tone}

CRITICAL REQUIREMENTS:
1. Always respond with valid JSON matching this exact schema:
{RESPONSE_SCHEMA}

2. Provide exactly 3 choices (A, B, C) unless it's an ending
3. Each choice must have a unique, descriptive slug in snake_case
4. Personality traits range from 0 to 100, with 50 being neutral
5. Story text should be engaging and advance the plot meaningfully
6. Choices should lead to meaningfully different outcomes"""

    def get_user_prompt(self, request: GenerationRequest) -> str:
        continuing, opening = LENGTH_GUIDANCE.get(request.length, LENGTH_GUIDANCE["standard"])

        if request.is_continuation:
            game_state = json.dumps(request.game_state.model_dump(by_alias=True))
            return f"""Continue this {request.genre} story ({request.length} length, {request.challenge} difficulty).

Current game state: {game_state}
Current step: {request.current_step}
Previous choice: {request.previous_choice or 'None'}

Generate the next story segment that:
1. Acknowledges the previous choice's consequences
2. Advances the plot meaningfully
3. Maintains consistency with established game state
4. Provides 3 compelling new choices
5. {continuing}

Remember to update game_state appropriately and set is_ending=true if this should be the final segment."""

        return f"""Create the opening of a {request.genre} interactive story ({request.length} length, {request.challenge} difficulty).

Requirements:
1. Engaging opening that immediately draws the reader in
2. Clear setting and initial situation
3. Introduce the main character (use "you" perspective)
4. Present 3 meaningful choices that set different story directions
5. Initialize game_state with appropriate starting values
6. {opening}

The story should start with immediate action or an intriguing situation that demands a choice."""

    @staticmethod
    def get_supported_genres() -> list:
        return GENRES.copy()

    @staticmethod
    def build_context(request: GenerationRequest) -> Dict[str, Any]:
        """프롬프트와 함께 Provider에 넘기는 컨텍스트"""
        return {
            "genre": request.genre,
            "length": request.length,
            "challenge": request.challenge,
            "current_step": request.current_step,
            "game_state": request.game_state.model_dump(by_alias=True) if request.game_state else None,
        }


_prompt_manager = None


def get_prompt_manager() -> PromptManager:
    global _prompt_manager
    if _prompt_manager is None:
        _prompt_manager = PromptManager()
    return _prompt_manager
