import logging
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Optional, Any, Type

from pydantic import BaseModel
from google import genai
from google.genai import types

from ..ai.utils import normalize_model_id
from ..exceptions import RateLimitedError, UpstreamGenerationError
from ..settings import settings

logger = logging.getLogger("nosh.ai")


@dataclass
class InlineImage:
    mime_type: str
    data: bytes


@dataclass
class ChatMessage:
    role: str  # system | user | assistant
    content: str
    images: list[InlineImage] = field(default_factory=list)


@dataclass
class TokenUsage:
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass
class GenerationResult:
    content: Optional[str]
    model: str
    parsed: Any = None
    usage: Optional[TokenUsage] = None


def build_contents(messages: list[ChatMessage]) -> tuple[Optional[str], list[types.Content]]:
    """Split role-tagged messages into Gemini system instruction + contents.

    System messages are joined into the system instruction, assistant
    messages become the "model" role, images are sent as inline bytes.
    """
    system_parts: list[str] = []
    contents: list[types.Content] = []

    for msg in messages:
        if msg.role == "system":
            if msg.content:
                system_parts.append(msg.content)
            continue

        role = "model" if msg.role == "assistant" else "user"
        parts = []
        if msg.content:
            parts.append(types.Part.from_text(text=msg.content))
        for image in msg.images:
            parts.append(types.Part.from_bytes(data=image.data, mime_type=image.mime_type))

        if parts:
            contents.append(types.Content(role=role, parts=parts))

    system_instruction = "\n\n".join(system_parts) if system_parts else None
    return system_instruction, contents


def is_rate_limit_error(exc: Exception) -> bool:
    if getattr(exc, "code", None) == 429:
        return True
    msg = str(exc).lower()
    return "429" in msg or "resource_exhausted" in msg or "quota" in msg or "rate limit" in msg


def _usage_from(response) -> Optional[TokenUsage]:
    um = getattr(response, "usage_metadata", None)
    if um is None:
        return None
    return TokenUsage(
        input_tokens=um.prompt_token_count or 0,
        output_tokens=um.candidates_token_count or 0,
        total_tokens=um.total_token_count or 0,
    )


class AIClient:
    _instance = None

    def __init__(self):
        self.api_key = settings.gemini_api_key
        self.mode = settings.ai_mode  # "mock" or "gemini"
        self._client: Optional[genai.Client] = None
        self.last_error: Optional[str] = None
        self.last_error_at: Optional[datetime] = None
        self.quota_exceeded: bool = False

        if self.mode == "gemini" and self.api_key:
            self._client = genai.Client(api_key=self.api_key)

    @classmethod
    def get_instance(cls):
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def is_available(self) -> bool:
        return self.mode == "gemini" and self._client is not None

    def chat(
        self,
        messages: list[ChatMessage],
        *,
        temperature: Optional[float] = None,
        response_schema: Optional[Type[BaseModel]] = None,
        json_output: bool = False,
        model: Optional[str] = None,
    ) -> GenerationResult:
        """
        Send role-tagged messages to Gemini and return text + usage.

        With ``response_schema`` the output is constrained to that schema and
        ``parsed`` carries the SDK-parsed object; the raw text is always
        returned so callers can run their own validation.

        Raises RateLimitedError on 429/quota responses and
        UpstreamGenerationError for anything else. No retries.
        """
        if not self.is_available():
            raise UpstreamGenerationError("AI is not available", mode=self.mode)

        model_id = normalize_model_id(model or settings.gemini_text_model)
        system_instruction, contents = build_contents(messages)

        config = types.GenerateContentConfig(
            system_instruction=system_instruction,
            temperature=temperature,
            response_mime_type="application/json" if (json_output or response_schema) else None,
            response_schema=response_schema,
        )

        try:
            logger.info(f"Generating with model={model_id} messages={len(messages)}")
            response = self._client.models.generate_content(
                model=model_id,
                contents=contents,
                config=config
            )
        except Exception as e:
            self.last_error = f"{e.__class__.__name__}: {str(e)}"
            self.last_error_at = datetime.now(timezone.utc)
            logger.error(f"Gemini generation failed: {e}")

            if is_rate_limit_error(e):
                self.quota_exceeded = True
                raise RateLimitedError("Rate limit exceeded", model=model_id) from e
            raise UpstreamGenerationError(f"Gemini API error: {e}", model=model_id) from e

        parsed = response.parsed if response_schema else None
        return GenerationResult(
            content=response.text,
            model=model_id,
            parsed=parsed,
            usage=_usage_from(response),
        )


# Singleton instance access
ai_client = AIClient.get_instance()
