"""
LLM Predictor - next-word suggestions from a chat model.

Provides one predictor over several LLM providers (OpenAI, Groq, local
Ollama). The model is asked for a short JSON list of single words; the
reply is parsed leniently and only plain words are returned.
"""

import asyncio
import json
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

import aiohttp

from ..config import Config
from ..errors import PredictionError
from ..utils.logger import setup_logger
from .base import BaseSuggestionPredictor, ConversationMessage

logger = setup_logger(__name__)


class PredictorProvider(Enum):
    """Supported LLM providers."""
    OPENAI = "openai"
    OLLAMA = "ollama"  # Local models
    GROQ = "groq"  # Fast inference, OpenAI-compatible


MODEL_DEFAULTS = {
    PredictorProvider.OPENAI: "gpt-4o-mini",
    PredictorProvider.OLLAMA: "llama3.2",
    PredictorProvider.GROQ: "llama-3.1-8b-instant",
}


@dataclass
class PredictorConfig:
    """Configuration for the LLM predictor."""
    provider: PredictorProvider = PredictorProvider.OPENAI
    model: str = "gpt-4o-mini"
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    temperature: float = 0.3
    max_tokens: int = 60
    timeout: int = 30
    max_suggestions: int = 3


class BaseLLMProvider(ABC):
    """Abstract base class for LLM providers."""

    def __init__(self, config: PredictorConfig):
        self.config = config
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Lazily open the HTTP session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.config.timeout)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    async def close(self) -> None:
        """Close the session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    @abstractmethod
    async def complete(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        """Send one prompt and return the raw reply text."""
        pass


class OpenAIProvider(BaseLLMProvider):
    """OpenAI chat completions API (also works with compatible APIs)."""

    DEFAULT_BASE_URL = "https://api.openai.com/v1"
    NAME = "OpenAI"

    async def complete(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        """Generate completion using the chat completions endpoint."""
        session = await self._get_session()

        base_url = self.config.base_url or self.DEFAULT_BASE_URL
        url = f"{base_url}/chat/completions"

        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        headers = {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
        }

        payload = {
            "model": self.config.model,
            "messages": messages,
            "temperature": self.config.temperature,
            "max_tokens": self.config.max_tokens,
        }

        try:
            async with session.post(url, headers=headers, json=payload) as response:
                if response.status == 200:
                    data = await response.json()
                    return data["choices"][0]["message"]["content"]
                else:
                    error = await response.text()
                    raise PredictionError(f"{self.NAME} API error {response.status}: {error[:200]}")
        except asyncio.TimeoutError:
            raise PredictionError(f"{self.NAME} API timeout")
        except aiohttp.ClientError as e:
            raise PredictionError(f"{self.NAME} API request failed: {e}")
        except (KeyError, IndexError, TypeError) as e:
            raise PredictionError(f"{self.NAME} API returned an unexpected body: {e}")


class GroqProvider(OpenAIProvider):
    """Groq (OpenAI-compatible endpoint)."""

    DEFAULT_BASE_URL = "https://api.groq.com/openai/v1"
    NAME = "Groq"


class OllamaProvider(BaseLLMProvider):
    """Local models served by Ollama."""

    DEFAULT_BASE_URL = "http://localhost:11434"

    async def complete(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        """Complete through the local Ollama generate endpoint."""
        session = await self._get_session()

        base_url = self.config.base_url or self.DEFAULT_BASE_URL
        url = f"{base_url}/api/generate"

        full_prompt = f"{system_prompt}\n\n{prompt}" if system_prompt else prompt

        payload = {
            "model": self.config.model,
            "prompt": full_prompt,
            "stream": False,
            "options": {
                "temperature": self.config.temperature,
            },
        }

        try:
            async with session.post(url, json=payload) as response:
                if response.status == 200:
                    data = await response.json()
                    return data.get("response", "")
                else:
                    error = await response.text()
                    raise PredictionError(f"Ollama error {response.status}: {error[:200]}")
        except aiohttp.ClientConnectorError:
            raise PredictionError("Cannot connect to Ollama. Is it running?")
        except asyncio.TimeoutError:
            raise PredictionError("Ollama timeout")
        except aiohttp.ClientError as e:
            raise PredictionError(f"Ollama request failed: {e}")
        except (AttributeError, TypeError) as e:
            raise PredictionError(f"Ollama returned an unexpected body: {e}")


PROVIDER_CLASSES = {
    PredictorProvider.OPENAI: OpenAIProvider,
    PredictorProvider.OLLAMA: OllamaProvider,
    PredictorProvider.GROQ: GroqProvider,
}

WORD_PATTERN = re.compile(r"^[A-Za-z][A-Za-z' -]*$")


def parse_reply(text: str, limit: int) -> List[str]:
    """
    Extract suggestion words from a model reply.

    Accepts a JSON array or one word per line/comma; numbering and
    surrounding punctuation are dropped.
    """
    text = (text or "").strip()
    if not text:
        return []

    items: List[str] = []
    match = re.search(r"\[.*\]", text, re.DOTALL)
    if match:
        try:
            parsed = json.loads(match.group(0))
            items = [str(item) for item in parsed if isinstance(item, (str, int, float))]
        except ValueError:
            items = []
    if not items:
        items = re.split(r"[\n,]", text)

    words: List[str] = []
    for item in items:
        word = re.sub(r"^\s*\d+[.)]\s*", "", item).strip().strip('"\'.!?;:').strip()
        if word and WORD_PATTERN.match(word) and word.lower() not in (w.lower() for w in words):
            words.append(word)
    return words[:limit]


class LLMSuggestionPredictor(BaseSuggestionPredictor):
    """Predicts the next words of an AAC sentence with a chat model."""

    SYSTEM_PROMPT = """You help a person who communicates with picture cards.
Rules:
- Suggest the next single words they are most likely to want
- Use simple, common English words
- Return ONLY a JSON array of lowercase words, no explanation"""

    def __init__(self, config: Optional[PredictorConfig] = None):
        """
        Args:
            config: Predictor configuration. If None, uses Config values.
        """
        self.config = config or config_from_settings()
        self._provider: Optional[BaseLLMProvider] = None

    def _get_provider(self) -> BaseLLMProvider:
        """Provider instance for the configured backend."""
        if self._provider is None:
            provider_class = PROVIDER_CLASSES.get(self.config.provider, OpenAIProvider)
            self._provider = provider_class(self.config)
        return self._provider

    @property
    def is_configured(self) -> bool:
        """Check if the predictor can reach its provider."""
        if self.config.provider == PredictorProvider.OLLAMA:
            return True  # Ollama doesn't need API key
        return bool(self.config.api_key)

    def build_prompt(self, history: List[ConversationMessage]) -> str:
        earlier = [m.text for m in history[:-1] if m.text.strip()]
        current = history[-1].text if history else ""
        lines = []
        if earlier:
            lines.append("Recent sentences:")
            lines.extend(f"- {text}" for text in earlier)
        lines.append(f'Sentence so far: "{current}"')
        lines.append(f"Give {self.config.max_suggestions} next words.")
        return "\n".join(lines)

    async def predict(self, history: List[ConversationMessage]) -> List[str]:
        if not history:
            return []
        if not self.is_configured:
            raise PredictionError(f"No API key configured for {self.config.provider.value}")

        provider = self._get_provider()
        reply = await provider.complete(self.build_prompt(history), self.SYSTEM_PROMPT)
        words = parse_reply(reply, self.config.max_suggestions)
        logger.debug(f"Predicted {words} for '{history[-1].text}'")
        return words

    async def close(self) -> None:
        """Close the predictor and release resources."""
        if self._provider:
            await self._provider.close()
            self._provider = None


def config_from_settings() -> PredictorConfig:
    """Create predictor config from Config values."""
    provider = parse_provider(Config.PREDICTOR_PROVIDER)
    return PredictorConfig(
        provider=provider,
        model=Config.PREDICTOR_MODEL or MODEL_DEFAULTS[provider],
        api_key=Config.PREDICTOR_API_KEY or None,
        base_url=Config.PREDICTOR_BASE_URL or None,
        timeout=Config.TIMEOUT,
        max_suggestions=Config.MAX_SUGGESTIONS,
    )


def parse_provider(name: Optional[str]) -> PredictorProvider:
    return {
        "openai": PredictorProvider.OPENAI,
        "ollama": PredictorProvider.OLLAMA,
        "groq": PredictorProvider.GROQ,
    }.get((name or "").lower(), PredictorProvider.OPENAI)


def create_predictor(
    provider: Optional[str] = None,
    model: Optional[str] = None,
    api_key: Optional[str] = None,
    base_url: Optional[str] = None,
) -> LLMSuggestionPredictor:
    """
    Create a predictor with the given configuration.

    Args:
        provider: Provider name (openai, ollama, groq); Config value if None
        model: Model name (provider default if None)
        api_key: API key (Config value if None)
        base_url: Override the provider endpoint

    Returns:
        Configured LLMSuggestionPredictor instance
    """
    config = config_from_settings()
    if provider is not None:
        config.provider = parse_provider(provider)
        config.model = model or MODEL_DEFAULTS[config.provider]
    elif model:
        config.model = model
    if api_key is not None:
        config.api_key = api_key
    if base_url is not None:
        config.base_url = base_url
    return LLMSuggestionPredictor(config)
