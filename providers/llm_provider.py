"""
LLM Provider 구현 (원시 스토리 응답 생성)
"""

from abc import ABC, abstractmethod
from typing import Dict, Any
import asyncio
import json
import re
import aiohttp
import logging
import time

logger = logging.getLogger(__name__)

JSON_FENCE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")


def extract_json(content: str) -> Dict[str, Any]:
    """모델 출력에서 JSON 객체 추출 (마크다운 코드 블록 제거)"""
    match = JSON_FENCE.search(content)
    if match:
        content = match.group(1)
    else:
        start = content.find("{")
        end = content.rfind("}") + 1
        if start != -1 and end > start:
            content = content[start:end]

    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON response: {e}")

    if not isinstance(data, dict):
        raise ValueError("Invalid JSON response: not an object")
    return data


class LLMProvider(ABC):
    def __init__(self):
        self.last_tokens_used = 0

    @abstractmethod
    async def generate_story(self, prompt: str, **kwargs) -> Dict[str, Any]:
        pass

    @abstractmethod
    def get_provider_name(self) -> str:
        pass

    @abstractmethod
    def is_available(self) -> bool:
        pass


class OpenAIProvider(LLMProvider):
    """OpenAI Provider"""

    def __init__(self, api_key: str, model: str = "gpt-4o-mini", max_tokens: int = 1500):
        super().__init__()
        self.api_key = api_key
        self.model = model
        self.max_tokens = max_tokens
        self.base_url = "https://api.openai.com/v1/chat/completions"

    def is_available(self) -> bool:
        return bool(self.api_key)

    async def generate_story(self, prompt: str, **kwargs) -> Dict[str, Any]:
        if not self.is_available():
            logger.error("OpenAIProvider 사용 불가: API 키 없음")
            raise ValueError("OpenAI API key is not configured.")

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json"
        }

        payload = {
            "model": self.model,
            "messages": [
                {"role": "user", "content": prompt}
            ],
            "max_tokens": self.max_tokens,
            "temperature": 0.8,
            "response_format": {"type": "json_object"}
        }

        start_time = time.time()
        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(self.base_url, headers=headers, json=payload,
                                        timeout=aiohttp.ClientTimeout(total=30)) as response:
                    if response.status != 200:
                        error_text = await response.text()
                        logger.error("OpenAI API 오류 %s: %s", response.status, error_text)
                        raise RuntimeError(f"OpenAI API error: {response.status}")

                    result = await response.json()
        except asyncio.TimeoutError:
            logger.error("OpenAI API 타임아웃 (30초 초과)")
            raise RuntimeError("OpenAI API request timed out")
        except aiohttp.ClientError as e:
            logger.error("HTTP 클라이언트 오류: %s: %s", type(e).__name__, e)
            raise RuntimeError(f"HTTP client error: {e}")

        logger.info("OpenAI 응답 시간: %.2f초", time.time() - start_time)

        choices = result.get("choices") or []
        if not choices:
            logger.error("OpenAI 응답에 choices 없음: %s", result)
            raise ValueError("No content received from OpenAI")

        self.last_tokens_used = (result.get("usage") or {}).get("total_tokens", 0)
        return extract_json(choices[0]["message"]["content"])

    def get_provider_name(self) -> str:
        return f"OpenAI {self.model}"


class GeminiProvider(LLMProvider):
    """Google Gemini Provider"""

    def __init__(self, api_key: str, model: str = "gemini-1.5-flash", max_tokens: int = 1500):
        super().__init__()
        self.api_key = api_key
        self.model = model
        self.max_tokens = max_tokens
        self.base_url = f"https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

    def is_available(self) -> bool:
        return bool(self.api_key)

    async def generate_story(self, prompt: str, **kwargs) -> Dict[str, Any]:
        if not self.is_available():
            logger.error("GeminiProvider 사용 불가: API 키 없음")
            raise ValueError("Gemini API key is not configured.")

        payload = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": 0.8,
                "maxOutputTokens": self.max_tokens,
                "topP": 0.8,
                "topK": 10
            }
        }

        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(self.base_url, params={"key": self.api_key}, json=payload,
                                        timeout=aiohttp.ClientTimeout(total=30)) as response:
                    if response.status != 200:
                        error_text = await response.text()
                        logger.error("Gemini API 오류 %s: %s", response.status, error_text)
                        raise RuntimeError(f"Gemini API error: {response.status}")

                    result = await response.json()
        except asyncio.TimeoutError:
            logger.error("Gemini API 타임아웃 (30초 초과)")
            raise RuntimeError("Gemini API request timed out")
        except aiohttp.ClientError as e:
            logger.error("HTTP 클라이언트 오류: %s: %s", type(e).__name__, e)
            raise RuntimeError(f"HTTP client error: {e}")

        try:
            content = result["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            raise ValueError("No content received from Gemini")

        self.last_tokens_used = (result.get("usageMetadata") or {}).get("totalTokenCount", 0)
        return extract_json(content)

    def get_provider_name(self) -> str:
        return f"Gemini {self.model}"


class MockProvider(LLMProvider):
    """템플릿 기반 Mock Provider (로컬 실행 / 테스트용)"""

    def __init__(self, delay: float = 0.0):
        super().__init__()
        from templates.fallback_templates import MockStoryGenerator
        self.generator = MockStoryGenerator()
        self.delay = delay

    def is_available(self) -> bool:
        return True

    async def generate_story(self, prompt: str, **kwargs) -> Dict[str, Any]:
        if self.delay:
            await asyncio.sleep(self.delay)

        self.last_tokens_used = 0
        return self.generator.generate_story(
            genre=kwargs.get("genre", "fantasy"),
            length=kwargs.get("length", "standard"),
            current_step=kwargs.get("current_step"),
            game_state=kwargs.get("game_state"),
        )

    def get_provider_name(self) -> str:
        return "Mock Provider"


class LLMProviderFactory:
    """LLM Provider 팩토리"""

    @staticmethod
    def get_provider() -> LLMProvider:
        from config.settings import get_settings
        settings = get_settings()
        provider_name = settings.AI_PROVIDER.lower()

        if provider_name == "openai" and settings.OPENAI_API_KEY:
            return OpenAIProvider(
                api_key=settings.OPENAI_API_KEY,
                model=settings.OPENAI_MODEL,
                max_tokens=settings.OPENAI_MAX_TOKENS
            )

        if provider_name == "gemini" and settings.GEMINI_API_KEY:
            return GeminiProvider(
                api_key=settings.GEMINI_API_KEY,
                model=settings.GEMINI_MODEL
            )

        if provider_name != "mock":
            logger.error("%s Provider 설정 없음, Mock Provider 사용", provider_name)

        return MockProvider()

    @staticmethod
    def get_available_providers() -> Dict[str, bool]:
        from config.settings import get_settings
        return get_settings().get_available_providers()
