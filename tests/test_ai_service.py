"""
Tests for prompt templates, the AI service and the documentation cache.
"""

import asyncio
import fnmatch
from types import SimpleNamespace

import openai
import pytest

from autodocgen.ai_service import AIConfigError, AIService, AIServiceError, clean_documentation
from autodocgen.cache_manager import CacheManager, create_cache_manager
from autodocgen.config import AIConfig, CacheConfig
from autodocgen.prompt_templates import TemplateType, build_prompt, get_template

ANALYSIS = {
    "framework": "express",
    "routes": [{"method": "GET", "path": "/users", "handler": "listUsers", "framework": "express"}],
    "controllers": [],
    "services": [],
    "types": [],
    "metadata": {"totalRoutes": 1, "totalControllers": 0, "totalServices": 0, "totalTypes": 0},
}


class FakeCompletions:
    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=self.content))])


def chat_client(content=None, error=None):
    return SimpleNamespace(chat=SimpleNamespace(completions=FakeCompletions(content, error)))


class FakeMessages:
    def __init__(self, text):
        self.text = text
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        return SimpleNamespace(content=[SimpleNamespace(type="text", text=self.text)])


class FakeModels:
    def __init__(self, text):
        self.text = text

    async def generate_content(self, **kwargs):
        return SimpleNamespace(text=self.text)


class FakeCache:
    def __init__(self, cached=None):
        self.cached = cached
        self.stored = []

    async def get_documentation(self, provider, model, prompt):
        return self.cached

    async def set_documentation(self, provider, model, prompt, content):
        self.stored.append((provider, model, content))
        return True


class FakeRedis:
    def __init__(self):
        self.data = {}

    async def get(self, key):
        return self.data.get(key)

    async def setex(self, key, ttl, value):
        self.data[key] = value

    async def delete(self, key):
        return 1 if self.data.pop(key, None) is not None else 0

    async def scan_iter(self, match=None):
        for key in list(self.data):
            if match is None or fnmatch.fnmatch(key, match):
                yield key

    async def info(self):
        return {"redis_version": "7.2.0", "used_memory_human": "1M"}

    async def aclose(self):
        pass


class TestPromptTemplates:
    """Test template selection and placeholder filling."""

    def test_templates_exist(self):
        """Every template type has text mentioning the framework."""
        for template_type in TemplateType:
            assert "{{framework}}" in get_template(template_type.value)

    def test_unknown_template_falls_back(self):
        """Unknown names use the default template."""
        assert get_template("nope") == get_template("default")

    def test_custom_template_file(self, tmp_path):
        """A custom file replaces the built-in templates."""
        custom = tmp_path / "prompt.md"
        custom.write_text("Document {{framework}} with {{totalRoutes}} routes")

        prompt = build_prompt(get_template("default", str(custom)), ANALYSIS)
        assert prompt == "Document express with 1 routes"

    def test_unknown_placeholders_are_kept(self):
        """Placeholders without a value stay in place."""
        assert build_prompt("{{framework}} {{mystery}}", ANALYSIS) == "express {{mystery}}"

    def test_project_data_is_json(self):
        """projectData is the whole analysis as JSON."""
        prompt = build_prompt("{{projectData}}", ANALYSIS)
        assert '"handler": "listUsers"' in prompt


class TestAIService:
    """Test provider dispatch, caching and response cleanup."""

    def test_openai_generation(self):
        """Documentation comes from the chat completion."""
        client = chat_client("# Users API")
        service = AIService(AIConfig(provider="openai"), api_key="sk-test", client=client)

        documentation = asyncio.run(service.generate_documentation(ANALYSIS))

        assert documentation == "# Users API"
        call = client.chat.completions.calls[0]
        assert call["model"] == "gpt-4o-mini"
        assert "listUsers" in call["messages"][1]["content"]

    def test_groq_uses_configured_model(self):
        """An explicit model overrides the provider default."""
        client = chat_client("docs")
        service = AIService(AIConfig(provider="groq", model="mixtral-8x7b"), api_key="gsk", client=client)

        asyncio.run(service.generate_documentation(ANALYSIS))

        assert service.model == "mixtral-8x7b"
        assert client.chat.completions.calls[0]["model"] == "mixtral-8x7b"

    def test_anthropic_generation(self):
        """Anthropic text blocks are joined."""
        client = SimpleNamespace(messages=FakeMessages("## Endpoints"))
        service = AIService(AIConfig(provider="anthropic"), api_key="key", client=client)

        assert asyncio.run(service.generate_documentation(ANALYSIS)) == "## Endpoints"
        assert client.messages.calls[0]["system"]

    def test_google_generation(self):
        """Google responses use the text field."""
        client = SimpleNamespace(aio=SimpleNamespace(models=FakeModels("Gemini docs")))
        service = AIService(AIConfig(provider="google"), api_key="key", client=client)

        assert asyncio.run(service.generate_documentation(ANALYSIS)) == "Gemini docs"

    def test_code_fence_is_removed(self):
        """A fence wrapped around the whole answer is stripped."""
        client = chat_client("```markdown\n# Title\n\nBody\n```")
        service = AIService(AIConfig(provider="openai"), api_key="sk", client=client)

        assert asyncio.run(service.generate_documentation(ANALYSIS)) == "# Title\n\nBody"

    def test_empty_response_is_an_error(self):
        """An empty answer raises AIServiceError."""
        service = AIService(AIConfig(provider="openai"), api_key="sk", client=chat_client("  "))

        with pytest.raises(AIServiceError):
            asyncio.run(service.generate_documentation(ANALYSIS))

    def test_sdk_errors_are_wrapped(self):
        """Provider SDK errors become AIServiceError."""
        client = chat_client(error=openai.OpenAIError("boom"))
        service = AIService(AIConfig(provider="openai"), api_key="sk", client=client)

        with pytest.raises(AIServiceError, match="boom"):
            asyncio.run(service.generate_documentation(ANALYSIS))

    def test_missing_api_key(self, monkeypatch):
        """A provider without any key cannot be used."""
        for name in ("GROQ_API_KEY", "AUTODOCGEN_GROQ_API_KEY"):
            monkeypatch.delenv(name, raising=False)

        with pytest.raises(AIConfigError, match="GROQ_API_KEY"):
            AIService(AIConfig(provider="groq"), client=chat_client("x"))

    def test_unsupported_provider(self):
        """Unknown providers are rejected."""
        with pytest.raises(AIConfigError):
            AIService(AIConfig(provider="cohere"), api_key="k", client=chat_client("x"))

    def test_missing_custom_template(self, tmp_path):
        """An unreadable custom template is a configuration error."""
        config = AIConfig(provider="openai", custom_prompt_file=str(tmp_path / "missing.md"))
        service = AIService(config, api_key="sk", client=chat_client("x"))

        with pytest.raises(AIConfigError, match="missing.md"):
            asyncio.run(service.generate_documentation(ANALYSIS))

    def test_cache_hit_skips_provider(self):
        """Cached documentation is returned without a request."""
        client = chat_client("fresh")
        service = AIService(AIConfig(provider="openai"), api_key="sk", cache=FakeCache("cached"), client=client)

        assert asyncio.run(service.generate_documentation(ANALYSIS)) == "cached"
        assert client.chat.completions.calls == []

    def test_cache_miss_stores_result(self):
        """Fresh documentation is written to the cache."""
        cache = FakeCache()
        service = AIService(AIConfig(provider="openai"), api_key="sk", cache=cache, client=chat_client("fresh"))

        asyncio.run(service.generate_documentation(ANALYSIS))

        assert cache.stored == [("openai", "gpt-4o-mini", "fresh")]

    def test_clean_documentation_keeps_inner_fences(self):
        """Only a fence around the whole text is removed."""
        text = "Intro\n```js\napp.get()\n```"
        assert clean_documentation(text) == text


class TestCacheManager:
    """Test the Redis documentation cache."""

    def test_disabled_cache(self):
        """A disabled cache never connects."""
        async def scenario():
            manager = await create_cache_manager(CacheConfig())
            return manager.connected, await manager.get_documentation("openai", "m", "p")

        assert asyncio.run(scenario()) == (False, None)

    def test_set_get_and_clear(self):
        """Entries are keyed by provider, model and prompt."""
        async def scenario():
            manager = CacheManager(CacheConfig(enabled=True), client=FakeRedis())
            await manager.set_documentation("openai", "gpt-4o-mini", "prompt", "# Docs")
            hit = await manager.get_documentation("openai", "gpt-4o-mini", "prompt")
            miss = await manager.get_documentation("groq", "gpt-4o-mini", "prompt")
            stats = await manager.get_cache_stats()
            removed = await manager.clear_cache()
            return hit, miss, stats, removed

        hit, miss, stats, removed = asyncio.run(scenario())

        assert hit == "# Docs"
        assert miss is None
        assert stats["cached_documents"] == 1
        assert removed == 1

    def test_key_is_stable(self):
        """The same inputs always give the same key."""
        key = CacheManager.documentation_key("openai", "m", "prompt")
        assert key == CacheManager.documentation_key("openai", "m", "prompt")
        assert key.startswith("autodocgen:doc:")
