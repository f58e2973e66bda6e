import pytest
from types import SimpleNamespace
from unittest.mock import MagicMock, AsyncMock, patch

from chatrelay.files import EncodedImage
from chatrelay.providers.openai import OpenAIProvider
from chatrelay.types import Provider


class FakeFileStore:
    """In-memory FileStore that records the order of reads."""

    def __init__(self, texts=None, images=None):
        self.texts = texts or {}
        self.images = images or {}
        self.calls = []

    async def read(self, name):
        self.calls.append(("read", name))
        return self.texts[name]

    async def base64_image(self, name):
        self.calls.append(("image", name))
        b64 = self.images[name]
        return EncodedImage(data=f"data:image/png;base64,{b64}", mime="image/png", base64=b64)


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def mock_env(monkeypatch):
    """Mock environment variables for API keys."""
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test-openai")
    monkeypatch.setenv("DEEPSEEK_API_KEY", "sk-test-deepseek")
    monkeypatch.delenv("GITHUB_API_KEY", raising=False)
    monkeypatch.delenv("OPENAI_API_HOST", raising=False)
    monkeypatch.delenv("DEEPSEEK_API_HOST", raising=False)


@pytest.fixture
def file_store():
    return FakeFileStore


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def make_chunk():
    """Build a streamed chunk shaped like the SDK's ChatCompletionChunk."""
    def _make(content=None, reasoning=None, usage=None, choices=True):
        if not choices:
            return SimpleNamespace(choices=[], usage=usage)
        delta = SimpleNamespace(content=content, reasoning_content=reasoning)
        return SimpleNamespace(choices=[SimpleNamespace(delta=delta)], usage=usage)
    return _make


@pytest.fixture
def make_response():
    """Build a non-streamed response shaped like the SDK's ChatCompletion."""
    def _make(content="", usage=None):
        message = SimpleNamespace(content=content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)], usage=usage)
    return _make


@pytest.fixture
def astream():
    """Wrap a list of chunks in an async iterator, optionally running a hook before each."""
    def _make(chunks, before_each=None):
        async def _gen():
            for index, chunk in enumerate(chunks):
                if before_each is not None:
                    before_each(index)
                yield chunk
        return _gen()
    return _make


@pytest.fixture
def make_provider():
    """Create an OpenAIProvider whose SDK client is a mock."""
    def _make(provider_id="openai", files=None, settings=None, keep_alive_minutes=None, resolver=None):
        with patch("chatrelay.providers.openai.AsyncOpenAI") as mock_openai_cls:
            client_mock = MagicMock()
            client_mock.chat.completions.create = AsyncMock()
            client_mock.post = AsyncMock()
            client_mock.get = AsyncMock()
            client_mock.embeddings.create = AsyncMock()
            mock_openai_cls.return_value = client_mock

            provider = OpenAIProvider(
                Provider(
                    id=provider_id,
                    api_key="sk-test",
                    api_host="https://api.example.com",
                    keep_alive_minutes=keep_alive_minutes,
                ),
                files or FakeFileStore(),
                resolver=resolver,
                settings=settings,
            )
        return provider
    return _make
