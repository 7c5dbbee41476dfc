"""AI documentation service backed by Groq, OpenAI, Anthropic or Google models."""

import logging
from typing import Any, Dict, Optional, Type

import anthropic
import groq
import openai
from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types

from .cache_manager import CacheManager
from .config import AIConfig, PROVIDER_API_KEY_ENV, SUPPORTED_PROVIDERS, get_api_key_from_env
from .prompt_templates import build_prompt, get_template

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "You are a technical writer who produces accurate, well structured API documentation."


class AIConfigError(Exception):
    """AI provider configuration error."""
    pass


class AIServiceError(Exception):
    """AI provider request error."""
    pass


class BaseProvider:
    """Common state for provider wrappers."""

    name = ""

    def __init__(self, api_key: str, config: AIConfig, client: Any = None):
        self.api_key = api_key
        self.model = config.resolved_model()
        self.temperature = config.temperature
        self.max_tokens = config.max_tokens
        self.timeout = config.timeout
        self.client = client if client is not None else self._create_client()

    def _create_client(self) -> Any:
        raise NotImplementedError

    async def complete(self, prompt: str) -> str:
        raise NotImplementedError


class GroqProvider(BaseProvider):
    name = "groq"

    def _create_client(self) -> Any:
        return groq.AsyncGroq(api_key=self.api_key, timeout=self.timeout)

    async def complete(self, prompt: str) -> str:
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except groq.GroqError as e:
            raise AIServiceError(f"Groq request failed: {e}") from e
        return response.choices[0].message.content or ""


class OpenAIProvider(BaseProvider):
    name = "openai"

    def _create_client(self) -> Any:
        return openai.AsyncOpenAI(api_key=self.api_key, timeout=self.timeout)

    async def complete(self, prompt: str) -> str:
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except openai.APITimeoutError as e:
            raise AIServiceError(f"OpenAI request timed out after {self.timeout}s") from e
        except openai.RateLimitError as e:
            raise AIServiceError("OpenAI rate limit exceeded") from e
        except openai.OpenAIError as e:
            raise AIServiceError(f"OpenAI request failed: {e}") from e
        return response.choices[0].message.content or ""


class AnthropicProvider(BaseProvider):
    name = "anthropic"

    def _create_client(self) -> Any:
        return anthropic.AsyncAnthropic(api_key=self.api_key, timeout=self.timeout)

    async def complete(self, prompt: str) -> str:
        try:
            response = await self.client.messages.create(
                model=self.model,
                system=SYSTEM_PROMPT,
                messages=[{"role": "user", "content": prompt}],
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except anthropic.AnthropicError as e:
            raise AIServiceError(f"Anthropic request failed: {e}") from e
        return "".join(block.text for block in response.content if getattr(block, "type", "text") == "text")


class GoogleProvider(BaseProvider):
    name = "google"

    def _create_client(self) -> Any:
        return genai.Client(api_key=self.api_key)

    async def complete(self, prompt: str) -> str:
        try:
            response = await self.client.aio.models.generate_content(
                model=self.model,
                contents=prompt,
                config=genai_types.GenerateContentConfig(
                    system_instruction=SYSTEM_PROMPT,
                    temperature=self.temperature,
                    max_output_tokens=self.max_tokens,
                ),
            )
        except genai_errors.APIError as e:
            raise AIServiceError(f"Google request failed: {e}") from e
        return response.text or ""


PROVIDERS: Dict[str, Type[BaseProvider]] = {
    "groq": GroqProvider,
    "openai": OpenAIProvider,
    "anthropic": AnthropicProvider,
    "google": GoogleProvider,
}


def clean_documentation(text: str) -> str:
    """Strip a code fence wrapped around the whole response."""
    cleaned = text.strip()
    if cleaned.startswith("```") and cleaned.endswith("```") and len(cleaned) > 6:
        first_newline = cleaned.find("\n")
        if first_newline != -1:
            cleaned = cleaned[first_newline + 1:-3].strip()
    return cleaned


def resolve_api_key(config: AIConfig, api_key: Optional[str] = None) -> str:
    """API key from the explicit value, the config, then the environment."""
    key = api_key or config.api_key or get_api_key_from_env(config.provider)
    if not key:
        env_names = ", ".join(PROVIDER_API_KEY_ENV.get(config.provider, []))
        raise AIConfigError(
            f"AI API key required for {config.provider}. "
            f"Set it with --api-key, the config file or one of: {env_names}"
        )
    return key


class AIService:
    """Generates documentation text from an analysis."""

    def __init__(
        self,
        config: AIConfig,
        api_key: Optional[str] = None,
        cache: Optional[CacheManager] = None,
        client: Any = None,
    ):
        if config.provider not in PROVIDERS:
            raise AIConfigError(
                f"Unsupported AI provider '{config.provider}'. "
                f"Choose one of: {', '.join(SUPPORTED_PROVIDERS)}"
            )
        self.config = config
        self.cache = cache
        self.provider = PROVIDERS[config.provider](resolve_api_key(config, api_key), config, client)
        logger.info(f"Using {self.provider.name} model {self.provider.model}")

    @property
    def provider_name(self) -> str:
        return self.provider.name

    @property
    def model(self) -> str:
        return self.provider.model

    async def generate_documentation(self, data: Dict[str, Any], template: Optional[str] = None) -> str:
        """Generate documentation for a serialized analysis."""
        if template is None:
            try:
                template = get_template(self.config.template, self.config.custom_prompt_file)
            except OSError as e:
                raise AIConfigError(f"Could not read prompt template {self.config.custom_prompt_file}: {e}") from e
        prompt = build_prompt(template, data)

        if self.cache is not None:
            cached = await self.cache.get_documentation(self.provider_name, self.model, prompt)
            if cached:
                logger.info("Using cached documentation")
                return cached

        logger.debug(f"Sending {len(prompt)} character prompt to {self.provider_name}")
        documentation = clean_documentation(await self.provider.complete(prompt))
        if not documentation:
            raise AIServiceError(f"{self.provider_name} returned an empty response")

        if self.cache is not None:
            await self.cache.set_documentation(self.provider_name, self.model, prompt, documentation)
        return documentation
