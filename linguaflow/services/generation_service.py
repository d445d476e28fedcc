"""
Generation Service - LLM-backed content generation for flashcards and dialogues.

Produces plain attribute-keyed drafts that can be handed straight to
``DataStore.add_card`` / ``add_collection`` / ``add_dialogue``. Nothing here
touches persistence.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import aiohttp

from ..config import Config
from ..exceptions import GenerationError
from ..models.dialogue import SPEAKERS
from ..utils import mapping
from ..utils.parsing import TextParser

logger = logging.getLogger(__name__)

DIALOGUE_TURNS = {"short": 5, "medium": 10, "long": 15}
DEFAULT_DIALOGUE_LENGTH = "medium"


@dataclass
class GenerationConfig:
    """Configuration for the generation service."""
    model: str = Config.GEMINI_MODEL
    api_key: Optional[str] = None
    base_url: str = Config.GEMINI_BASE_URL
    temperature: float = 0.7
    max_tokens: int = 4096
    timeout: int = Config.GENERATION_TIMEOUT


class BaseGenerationProvider(ABC):
    """Abstract base class for text generation providers."""

    def __init__(self, config: GenerationConfig):
        self.config = config
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
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
    async def complete(
        self,
        prompt: str,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        """Generate completion text for the given prompt."""
        pass


class GeminiProvider(BaseGenerationProvider):
    """Google Gemini ``generateContent`` provider."""

    async def complete(
        self,
        prompt: str,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        """Generate completion using the Gemini REST API."""
        if not self.config.api_key:
            raise GenerationError("Gemini API key not configured")

        session = await self._get_session()
        url = f"{self.config.base_url.rstrip('/')}/models/{self.config.model}:generateContent"

        payload = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": self.config.temperature if temperature is None else temperature,
                "topP": 0.95,
                "topK": 40,
                "maxOutputTokens": max_tokens or self.config.max_tokens,
            },
        }

        try:
            async with session.post(url, params={"key": self.config.api_key}, json=payload) as response:
                if response.status != 200:
                    error = await response.text()
                    raise GenerationError(f"Gemini API error {response.status}: {error[:200]}")
                data = await response.json()
        except asyncio.TimeoutError as e:
            raise GenerationError("Gemini API timeout") from e
        except aiohttp.ClientError as e:
            raise GenerationError(f"Gemini API request failed: {e}") from e

        try:
            parts = data["candidates"][0]["content"]["parts"]
        except (KeyError, IndexError, TypeError) as e:
            raise GenerationError("Gemini response has no content") from e
        return "".join(p.get("text", "") for p in parts if isinstance(p, dict))


def _reading_guide(target_language: str) -> str:
    lowered = target_language.lower()
    return "pinyin" if "chinese" in lowered or "mandarin" in lowered else "phonetic"


class GenerationService:
    """
    High-level generation API for vocabulary learning.

    Every call is bounded by the configured timeout; timeouts, provider
    failures and unparseable output all raise ``GenerationError``.
    """

    def __init__(
        self,
        config: Optional[GenerationConfig] = None,
        provider: Optional[BaseGenerationProvider] = None,
    ):
        """
        Initialize the generation service.

        Args:
            config: Generation configuration. If None, uses ``Config``.
            provider: Provider instance; a ``GeminiProvider`` is created lazily otherwise
        """
        self.config = config or GenerationConfig(api_key=Config.GEMINI_API_KEY or None)
        self._provider = provider

    def _get_provider(self) -> BaseGenerationProvider:
        if self._provider is None:
            self._provider = GeminiProvider(self.config)
        return self._provider

    def is_configured(self) -> bool:
        return self._provider is not None or bool(self.config.api_key)

    async def close(self) -> None:
        """Close the service and release resources."""
        if self._provider:
            await self._provider.close()
            self._provider = None

    async def __aenter__(self) -> "GenerationService":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _complete(self, prompt: str, what: str, **kwargs: Any) -> str:
        provider = self._get_provider()
        try:
            return await asyncio.wait_for(
                provider.complete(prompt, **kwargs), timeout=self.config.timeout
            )
        except asyncio.TimeoutError as e:
            logger.warning("Generation of %s timed out after %ss", what, self.config.timeout)
            raise GenerationError(f"Generating {what} timed out") from e

    async def _complete_json(self, prompt: str, what: str, **kwargs: Any) -> Any:
        text = await self._complete(prompt, what, **kwargs)
        try:
            return TextParser.parse_json(text)
        except ValueError as e:
            logger.error("Failed to parse %s: %s", what, e)
            raise GenerationError(f"Failed to generate {what}: model returned invalid JSON") from e

    @staticmethod
    def _card_drafts(items: Any) -> List[Dict[str, Any]]:
        if not isinstance(items, list):
            raise GenerationError("Expected a list of flashcards")
        drafts = []
        for item in items:
            if not isinstance(item, dict):
                continue
            draft = TextParser.normalize_fields(mapping.from_local(mapping.CARD_FIELDS, item))
            if draft.get("front") and draft.get("back"):
                drafts.append(draft)
        return drafts

    async def generate_flashcards(
        self,
        text: str,
        target_language: str = "Spanish",
        native_language: str = "English",
        count: int = 5,
    ) -> List[Dict[str, Any]]:
        """
        Generate card drafts for a word, phrase or passage.

        Args:
            text: Source text to build cards from
            target_language: Language being learned
            native_language: Learner's language
            count: Number of cards requested

        Returns:
            Card drafts (without ``collection_id``)
        """
        guide = _reading_guide(target_language)
        example_reading_line = "\n6. exampleReading: Pinyin for the example sentence" if guide == "pinyin" else ""
        prompt = f"""You are a language learning expert. Generate {count} flashcards for learning {target_language} from {native_language}.

Generate flashcards for: "{text}"

For each flashcard, provide:
1. front: The word/phrase in {target_language}
2. back: The translation in {native_language}
3. reading: {guide} pronunciation guide
4. example: An example sentence using the word in {target_language}
5. exampleTranslation: Translation of the example sentence{example_reading_line}

Respond ONLY with a valid JSON array of flashcard objects. No markdown, no explanation."""

        data = await self._complete_json(prompt, "flashcards", temperature=0.5)
        return self._card_drafts(data)

    async def generate_collection(
        self,
        topic: str,
        target_language: str = "Spanish",
        native_language: str = "English",
        card_count: int = 10,
    ) -> Dict[str, Any]:
        """
        Generate a themed collection.

        Returns:
            ``{"collection": <collection draft>, "cards": [<card drafts>]}``
        """
        guide = _reading_guide(target_language)
        prompt = f"""You are a language learning expert. Create a flashcard collection for learning {target_language}.

Topic: "{topic}"

Generate a collection with:
1. name: A catchy collection name
2. emoji: A single relevant emoji
3. description: A brief description (1 sentence)
4. cards: {card_count} flashcards with front, back, reading ({guide}), example, exampleTranslation in {native_language}

Respond ONLY with valid JSON. No markdown, no explanation."""

        data = await self._complete_json(prompt, "collection", max_tokens=8192)
        if not isinstance(data, dict) or not data.get("name"):
            raise GenerationError("Generated collection has no name")

        collection = {"name": TextParser.normalize_unicode(data["name"])}
        if data.get("emoji"):
            collection["emoji"] = data["emoji"]
        return {
            "collection": collection,
            "description": data.get("description") or "",
            "cards": self._card_drafts(data.get("cards") or []),
        }

    async def generate_dialogue(
        self,
        scenario: str = "ordering food at a restaurant",
        vocabulary: Sequence[str] = (),
        complexity: str = "intermediate",
        length: str = DEFAULT_DIALOGUE_LENGTH,
        target_language: str = "Spanish",
        native_language: str = "English",
    ) -> Dict[str, Any]:
        """
        Generate a two-speaker practice dialogue.

        Args:
            scenario: Situation to role-play
            vocabulary: Words the dialogue should use
            complexity: beginner, intermediate or advanced
            length: short (5 turns), medium (10) or long (15)
            target_language: Language of the dialogue lines
            native_language: Language of the translations

        Returns:
            Dialogue draft for ``DataStore.add_dialogue``
        """
        turns = DIALOGUE_TURNS.get(length, DIALOGUE_TURNS[DEFAULT_DIALOGUE_LENGTH])
        vocabulary_line = f"Include these vocabulary words: {', '.join(vocabulary)}" if vocabulary else ""
        prompt = f"""You are a language learning dialogue generator. Create a realistic conversation for practicing {target_language}.

Scenario: {scenario}
Complexity: {complexity} level
{vocabulary_line}

Generate a dialogue with approximately {turns} turns between two speakers (A and B).
- Speaker A is the learner
- Speaker B is the native speaker

For each line, include speaker ("A" or "B"), text in {target_language}, translation in {native_language}, and highlightedWords (array of vocabulary words used).
Also provide title, setting and duration (estimated minutes).

Respond ONLY with valid JSON: {{"title": "...", "setting": "...", "duration": 2, "lines": [...]}}"""

        data = await self._complete_json(prompt, "dialogue", temperature=0.8)
        if not isinstance(data, dict) or not isinstance(data.get("lines"), list):
            raise GenerationError("Generated dialogue has no lines")

        draft = mapping.from_local(mapping.DIALOGUE_FIELDS, data)
        lines = [line for line in draft.get("lines", []) if isinstance(line, dict)]
        for line in lines:
            speaker = str(line.get("speaker") or "").strip().upper()
            if speaker not in SPEAKERS:
                raise GenerationError(f"Generated dialogue has unknown speaker {line.get('speaker')!r}")
            line["speaker"] = speaker
        draft["lines"] = lines
        try:
            draft["duration"] = float(draft["duration"]) if draft.get("duration") is not None else None
        except (TypeError, ValueError):
            draft["duration"] = None
        draft.pop("id", None)
        draft.pop("created_at", None)
        return TextParser.normalize_fields(draft)

    async def translate(self, text: str, source_language: str, target_language: str) -> str:
        """Translate a short text; returns the bare translation."""
        prompt = (
            f"Translate the following text from {source_language} to {target_language}. "
            "Respond with ONLY the translation, no explanation.\n\n"
            f"Text: \"{text}\""
        )
        result = await self._complete(prompt, "translation", temperature=0.3, max_tokens=1024)
        return TextParser.normalize_unicode(result.strip())
