"""
준비된 스토리 콘텐츠 (대체 오프닝, 연결 구간, Mock AI 응답)
"""

import random
from typing import Any, Dict, List, Optional

STORY_TARGET_STEPS = {
    "quick": 5,
    "standard": 10,
    "extended": 15,
}

OPENINGS: Dict[str, Dict[str, Any]] = {
    "fantasy": {
        "storyText": "You stand at the crossroads of destiny, where ancient magic still whispers through the wind. "
                     "A mysterious figure approaches, their cloak billowing in the ethereal breeze. In their "
                     "outstretched hand lies an artifact that pulses with otherworldly energy.",
        "choices": [
            {"id": "A", "text": "Accept the mysterious artifact", "slug": "accept_artifact",
             "traits_impact": {"riskTaking": 1, "creativity": 1}},
            {"id": "B", "text": "Question the stranger's motives", "slug": "question_stranger",
             "traits_impact": {"pragmatism": 1}},
            {"id": "C", "text": "Politely decline and walk away", "slug": "decline_artifact",
             "traits_impact": {"pragmatism": 1, "riskTaking": -1}},
        ],
    },
    "mystery": {
        "storyText": "The old mansion creaks ominously as you step through its threshold. Rain pounds against the "
                     "windows while shadows dance in the flickering candlelight. A scream echoes from somewhere "
                     "upstairs, followed by an unsettling silence.",
        "choices": [
            {"id": "A", "text": "Rush upstairs toward the scream", "slug": "rush_upstairs",
             "traits_impact": {"riskTaking": 1, "empathy": 1}},
            {"id": "B", "text": "Search the ground floor first", "slug": "search_ground_floor",
             "traits_impact": {"pragmatism": 1}},
            {"id": "C", "text": "Call out to see if anyone responds", "slug": "call_out",
             "traits_impact": {"empathy": 1}},
        ],
    },
    "sci-fi": {
        "storyText": "The space station's alarms blare as you float through the zero-gravity corridor. Emergency "
                     "lights cast red shadows on the metallic walls. Through the viewport, an unknown vessel "
                     "approaches, its design unlike anything in the galactic database.",
        "choices": [
            {"id": "A", "text": "Attempt to communicate with the vessel", "slug": "communicate_vessel",
             "traits_impact": {"empathy": 1, "creativity": 1}},
            {"id": "B", "text": "Prepare the station's defenses", "slug": "prepare_defenses",
             "traits_impact": {"pragmatism": 1, "leadership": 1}},
            {"id": "C", "text": "Gather more data before acting", "slug": "gather_data",
             "traits_impact": {"pragmatism": 1, "riskTaking": -1}},
        ],
    },
    "horror": {
        "storyText": "The lights in the farmhouse flicker and die. Somewhere below, the cellar door you locked an "
                     "hour ago groans open. Footsteps climb the stairs slowly, one at a time, and then stop just "
                     "outside your room.",
        "choices": [
            {"id": "A", "text": "Open the door and face whatever waits", "slug": "open_the_door",
             "traits_impact": {"riskTaking": 2}},
            {"id": "B", "text": "Barricade the door and wait for dawn", "slug": "barricade_door",
             "traits_impact": {"pragmatism": 1, "riskTaking": -1}},
            {"id": "C", "text": "Climb out through the window", "slug": "escape_window",
             "traits_impact": {"creativity": 1}},
        ],
    },
    "romance": {
        "storyText": "The café is nearly empty when the stranger from the train sits down across from you, holding "
                     "the book you left behind. They smile as if they have been looking for you all week, and the "
                     "rain outside suddenly feels like an invitation to stay.",
        "choices": [
            {"id": "A", "text": "Invite them to share your table", "slug": "invite_stranger",
             "traits_impact": {"empathy": 1, "riskTaking": 1}},
            {"id": "B", "text": "Thank them and ask about the book", "slug": "ask_about_book",
             "traits_impact": {"creativity": 1}},
            {"id": "C", "text": "Take the book and leave politely", "slug": "leave_politely",
             "traits_impact": {"pragmatism": 1, "riskTaking": -1}},
        ],
    },
    "thriller": {
        "storyText": "Your phone buzzes with a message from an unknown number: a photo of you, taken thirty seconds "
                     "ago, on this exact platform. The train doors are closing. Across the tracks, a figure in a "
                     "grey coat lowers a camera and starts walking away.",
        "choices": [
            {"id": "A", "text": "Jump onto the train before the doors close", "slug": "board_train",
             "traits_impact": {"riskTaking": 1}},
            {"id": "B", "text": "Chase the figure in the grey coat", "slug": "chase_figure",
             "traits_impact": {"riskTaking": 2, "leadership": 1}},
            {"id": "C", "text": "Reply to the message and stall for time", "slug": "reply_message",
             "traits_impact": {"pragmatism": 1, "creativity": 1}},
        ],
    },
}

BRIDGE_SEGMENTS: List[Dict[str, Any]] = [
    {
        "storyText": "Time passes as you contemplate your next move. The situation has grown more complex, and new "
                     "opportunities present themselves. You must decide how to proceed.",
        "choices": [
            {"id": "A", "text": "Take bold action", "slug": "take_bold_action",
             "traits_impact": {"riskTaking": 1, "leadership": 1}},
            {"id": "B", "text": "Seek more information", "slug": "seek_information",
             "traits_impact": {"pragmatism": 1}},
            {"id": "C", "text": "Try to find allies", "slug": "find_allies",
             "traits_impact": {"empathy": 1}},
        ],
    },
    {
        "storyText": "The path ahead splits into multiple directions, each offering its own challenges and rewards. "
                     "You pause to consider which route aligns best with your goals.",
        "choices": [
            {"id": "A", "text": "Choose the direct path", "slug": "direct_path",
             "traits_impact": {"riskTaking": 1}},
            {"id": "B", "text": "Take the safer route", "slug": "safer_route",
             "traits_impact": {"pragmatism": 1, "riskTaking": -1}},
            {"id": "C", "text": "Look for a creative alternative", "slug": "creative_alternative",
             "traits_impact": {"creativity": 1}},
        ],
    },
]


def get_target_steps(length: str) -> int:
    return STORY_TARGET_STEPS.get(length, STORY_TARGET_STEPS["standard"])


def get_opening(genre: str) -> Dict[str, Any]:
    opening = OPENINGS.get(genre, OPENINGS["fantasy"])
    return {
        "storyText": opening["storyText"],
        "choices": [dict(choice) for choice in opening["choices"]],
    }


def get_bridge(rng: Optional[random.Random] = None) -> Dict[str, Any]:
    bridge = (rng or random).choice(BRIDGE_SEGMENTS)
    return {
        "storyText": bridge["storyText"],
        "choices": [dict(choice) for choice in bridge["choices"]],
    }


def next_act(current_step: int, act: int) -> int:
    if current_step > 6 and act == 2:
        return 3
    if current_step > 3 and act == 1:
        return 2
    return act


class MockStoryGenerator:
    """Provider 응답 형식(snake_case)의 고정 Mock 데이터"""

    def generate_story(self, genre: str, length: str = "standard", current_step: Optional[int] = None,
                       game_state: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        if current_step and game_state:
            segment = get_bridge(random.Random(current_step))
            state = dict(game_state)
            state["act"] = next_act(current_step, state.get("act", 1))
            is_ending = current_step >= get_target_steps(length)
        else:
            segment = get_opening(genre)
            state = {
                "act": 1,
                "flags": ["story_started"],
                "relationships": {},
                "inventory": [],
                "personality_traits": {
                    "riskTaking": 50,
                    "empathy": 50,
                    "pragmatism": 50,
                    "creativity": 50,
                    "leadership": 50,
                },
            }
            is_ending = False

        payload = {
            "story_text": segment["storyText"],
            "choices": segment["choices"],
            "game_state": state,
            "is_ending": is_ending,
        }
        if is_ending:
            payload["ending_type"] = "bittersweet"
            payload["ending_tag"] = "journey_complete"
        return payload
