import asyncio
import pytest
from types import SimpleNamespace
from unittest.mock import MagicMock, AsyncMock, patch

from chatrelay.cancellation import CancellationToken
from chatrelay.errors import ImageGenerationCancelled
from chatrelay.providers.openai import OpenAIProvider
from chatrelay.settings import DEFAULT_TOPIC_NAMING_PROMPT, RelaySettings
from chatrelay.types import (
    Assistant, AssistantSettings, FileRef, FileType, GenerateImageParams, Message, Model, Provider,
)

GPT4O = Model(id="gpt-4o", provider="openai")


def _json_response(payload):
    response = MagicMock()
    response.json.return_value = payload
    return response


class TestOpenAIProviderInit:

    @patch("chatrelay.providers.openai.AsyncOpenAI")
    def test_client_config(self, mock_openai_cls, file_store):
        OpenAIProvider(Provider(id="deepseek", api_key="sk-x", api_host="https://api.deepseek.com"), file_store())

        kwargs = mock_openai_cls.call_args.kwargs
        assert kwargs["api_key"] == "sk-x"
        assert kwargs["base_url"] == "https://api.deepseek.com/v1/"
        assert kwargs["max_retries"] == 0
        assert "X-Title" in kwargs["default_headers"]

    @patch("chatrelay.providers.openai.AsyncAzureOpenAI")
    def test_azure_client(self, mock_azure_cls, file_store):
        provider = Provider(
            id="azure-openai", type="azure-openai", api_key="az", api_host="https://x.openai.azure.com",
            api_version="2024-06-01",
        )
        OpenAIProvider(provider, file_store())

        kwargs = mock_azure_cls.call_args.kwargs
        assert kwargs["azure_endpoint"] == "https://x.openai.azure.com"
        assert kwargs["api_version"] == "2024-06-01"


class TestCompletions:

    @pytest.mark.asyncio
    async def test_o1_drops_system_prompt_and_temperature(self, make_provider, make_response):
        provider = make_provider()
        provider.client.chat.completions.create.return_value = make_response("ok")
        assistant = Assistant(
            prompt="Be terse",
            model=Model(id="o1-preview", provider="openai"),
            settings=AssistantSettings(stream_output=False),
        )

        events = [e async for e in provider.stream_completions([Message(role="user", content="Hi")], assistant)]

        kwargs = provider.client.chat.completions.create.call_args.kwargs
        assert kwargs["messages"] == [{"role": "user", "content": "Hi"}]
        assert "temperature" not in kwargs
        assert kwargs["model"] == "o1-preview"
        assert len(events) == 1
        assert events[0].text == "ok"
        assert events[0].metrics.time_first_token_millsec == 0

    @pytest.mark.asyncio
    async def test_system_prompt_leads_and_window_is_bounded(self, make_provider, make_chunk, astream):
        provider = make_provider()
        provider.client.chat.completions.create.return_value = astream([make_chunk(content="x")])
        assistant = Assistant(prompt="Be terse", model=GPT4O, settings=AssistantSettings(context_count=2))
        history = [Message(role="user", content=f"m{i}") for i in range(6)]
        filtered = []

        await provider.completions(history, assistant, on_chunk=lambda c: None, on_filter_messages=filtered.extend)

        kwargs = provider.client.chat.completions.create.call_args.kwargs
        assert kwargs["messages"] == [
            {"role": "system", "content": "Be terse"},
            {"role": "user", "content": "m3"},
            {"role": "user", "content": "m4"},
            {"role": "user", "content": "m5"},
        ]
        assert [m.content for m in filtered] == ["m3", "m4", "m5"]
        assert kwargs["stream"] is True

    @pytest.mark.asyncio
    async def test_context_clear_marker_filters_history(self, make_provider, make_response):
        provider = make_provider()
        provider.client.chat.completions.create.return_value = make_response("ok")
        assistant = Assistant(model=GPT4O, settings=AssistantSettings(stream_output=False))
        history = [
            Message(role="user", content="old"),
            Message(role="assistant", content="old reply"),
            Message(role="user", type="clear"),
            Message(role="user", content="new"),
        ]

        await provider.completions(history, assistant, on_chunk=lambda c: None)

        kwargs = provider.client.chat.completions.create.call_args.kwargs
        assert kwargs["messages"] == [{"role": "user", "content": "new"}]

    @pytest.mark.asyncio
    async def test_deepseek_reasoner_gets_leading_user_turn(self, make_provider, make_response):
        provider = make_provider("deepseek")
        provider.client.chat.completions.create.return_value = make_response("ok")
        assistant = Assistant(
            prompt="sys",
            model=Model(id="deepseek-reasoner", provider="deepseek"),
            settings=AssistantSettings(stream_output=False, context_count=1),
        )
        history = [Message(role="user", content="q1"), Message(role="assistant", content="a1"),
                   Message(role="user", content="q2")]

        await provider.completions(history, assistant, on_chunk=lambda c: None)

        kwargs = provider.client.chat.completions.create.call_args.kwargs
        assert kwargs["messages"] == [
            {"role": "system", "content": "sys"},
            {"role": "user", "content": ""},
            {"role": "assistant", "content": "a1"},
            {"role": "user", "content": "q2"},
        ]
        assert "temperature" not in kwargs

    @pytest.mark.asyncio
    async def test_github_o1_is_not_streamed(self, make_provider, make_response):
        provider = make_provider("github")
        provider.client.chat.completions.create.return_value = make_response("done")
        assistant = Assistant(model=Model(id="o1-mini", provider="github"), settings=AssistantSettings(stream_output=True))
        received = []

        await provider.completions([Message(role="user", content="hi")], assistant, on_chunk=received.append)

        assert provider.client.chat.completions.create.call_args.kwargs["stream"] is False
        assert [c.text for c in received] == ["done"]

    @pytest.mark.asyncio
    async def test_text_only_provider_inlines_attachments(self, make_provider, make_response, file_store):
        files = file_store(texts={"d.txt": "file body"}, images={"i.png": "AAAA"})
        provider = make_provider("deepseek", files=files)
        provider.client.chat.completions.create.return_value = make_response("ok")
        assistant = Assistant(model=Model(id="deepseek-chat", provider="deepseek"),
                              settings=AssistantSettings(stream_output=False))
        message = Message(role="user", content="read", files=(
            FileRef(id="i", ext=".png", origin_name="i.png", type=FileType.IMAGE),
            FileRef(id="d", ext=".txt", origin_name="d.txt", type=FileType.TEXT),
        ))

        await provider.completions([message], assistant, on_chunk=lambda c: None)

        content = provider.client.chat.completions.create.call_args.kwargs["messages"][0]["content"]
        assert isinstance(content, str)
        assert "file: d.txt\n\nfile body" in content

    @pytest.mark.asyncio
    async def test_keep_alive_and_extensions_go_in_extra_body(self, make_provider, make_response):
        provider = make_provider("dashscope", keep_alive_minutes=5)
        provider.client.chat.completions.create.return_value = make_response("ok")
        assistant = Assistant(model=Model(id="qwen-max", provider="dashscope"),
                              settings=AssistantSettings(stream_output=False), enable_web_search=True)

        await provider.completions([Message(role="user", content="news?")], assistant, on_chunk=lambda c: None)

        kwargs = provider.client.chat.completions.create.call_args.kwargs
        assert kwargs["extra_body"]["keep_alive"] == 300
        assert kwargs["extra_body"]["enable_search"] is True
        assert "enable_search" not in kwargs

    @pytest.mark.asyncio
    async def test_pause_halts_callbacks(self, make_provider, make_chunk, astream):
        provider = make_provider()
        provider.client.chat.completions.create.return_value = astream(
            [make_chunk(content=w) for w in ["a", "b", "c", "d"]]
        )
        assistant = Assistant(model=GPT4O)
        token = CancellationToken()
        received = []

        def on_chunk(chunk):
            received.append(chunk.text)
            if chunk.text == "b":
                token.cancel()

        await provider.completions([Message(role="user", content="hi")], assistant, on_chunk, cancel_token=token)

        assert received == ["a", "b"]

    @pytest.mark.asyncio
    async def test_async_callbacks_are_awaited(self, make_provider, make_chunk, astream):
        provider = make_provider()
        provider.client.chat.completions.create.return_value = astream([make_chunk(content="a")])
        on_chunk = AsyncMock()

        await provider.completions([Message(role="user", content="hi")], Assistant(model=GPT4O), on_chunk)

        on_chunk.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_transport_errors_propagate(self, make_provider):
        provider = make_provider()
        provider.client.chat.completions.create.side_effect = ConnectionError("boom")

        with pytest.raises(ConnectionError):
            await provider.completions([Message(role="user", content="hi")], Assistant(model=GPT4O), lambda c: None)

    @pytest.mark.asyncio
    async def test_default_model_used_when_assistant_has_none(self, make_provider, make_response):
        provider = make_provider(settings=RelaySettings(default_model=GPT4O))
        provider.client.chat.completions.create.return_value = make_response("ok")

        await provider.completions(
            [Message(role="user", content="hi")], Assistant(settings=AssistantSettings(stream_output=False)),
            lambda c: None,
        )

        assert provider.client.chat.completions.create.call_args.kwargs["model"] == "gpt-4o"


class TestTranslate:

    @pytest.mark.asyncio
    async def test_non_streamed_without_callback(self, make_provider, make_response):
        provider = make_provider()
        provider.client.chat.completions.create.return_value = make_response("Bonjour")
        assistant = Assistant(prompt="Translate to French", model=GPT4O)

        text = await provider.translate(Message(role="user", content="Hello"), assistant)

        kwargs = provider.client.chat.completions.create.call_args.kwargs
        assert text == "Bonjour"
        assert kwargs["stream"] is False
        assert kwargs["messages"] == [
            {"role": "system", "content": "Translate to French"},
            {"role": "user", "content": "Hello"},
        ]

    @pytest.mark.asyncio
    async def test_streamed_callback_gets_running_total(self, make_provider, make_chunk, astream):
        provider = make_provider()
        provider.client.chat.completions.create.return_value = astream(
            [make_chunk(content="Bon"), make_chunk(content="jour"), make_chunk(usage=None, choices=False)]
        )
        seen = []

        text = await provider.translate(Message(role="user", content="Hello"), Assistant(model=GPT4O), seen.append)

        assert text == "Bonjour"
        assert seen == ["Bon", "Bonjour", "Bonjour"]
        assert provider.client.chat.completions.create.call_args.kwargs["stream"] is True

    @pytest.mark.asyncio
    async def test_github_o1_not_streamed_even_with_callback(self, make_provider, make_response):
        provider = make_provider("github")
        provider.client.chat.completions.create.return_value = make_response("Hola")
        seen = []

        text = await provider.translate(
            Message(role="user", content="Hello"),
            Assistant(model=Model(id="o1-preview", provider="github")),
            seen.append,
        )

        assert text == "Hola"
        assert seen == []
        assert provider.client.chat.completions.create.call_args.kwargs["stream"] is False


class TestSummaries:

    @pytest.mark.asyncio
    async def test_transcript_and_truncation(self, make_provider, make_response):
        naming = Model(id="gpt-4o-mini", provider="openai")
        provider = make_provider(settings=RelaySettings(topic_naming_model=naming))
        provider.client.chat.completions.create.return_value = make_response(
            '"Planning, a trip: to Kyoto!" and a much longer tail that will be cut off here'
        )
        history = [
            Message(role="user", content="preset", is_preset=True),
            Message(role="user", content="one"),
            Message(role="assistant", content="two"),
            Message(role="user", content="three"),
            Message(role="assistant", content="four"),
            Message(role="user", content="five"),
        ]

        title = await provider.summaries(history, Assistant(model=GPT4O))

        kwargs = provider.client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["max_tokens"] == 1000
        assert kwargs["stream"] is False
        assert kwargs["messages"][0] == {"role": "system", "content": DEFAULT_TOPIC_NAMING_PROMPT}
        assert kwargs["messages"][1]["content"] == (
            "User: one\nAssistant: two\nUser: three\nAssistant: four\nUser: five"
        )
        assert len(title) <= 50
        assert title.startswith("Planning a trip to Kyoto")
        assert not any(c in title for c in '",:!\n')

    @pytest.mark.asyncio
    async def test_configured_prompt_and_assistant_model_fallback(self, make_provider, make_response):
        provider = make_provider(settings=RelaySettings(topic_naming_prompt="Name it"))
        provider.client.chat.completions.create.return_value = make_response(None)

        title = await provider.summaries([Message(role="user", content="hi")], Assistant(model=GPT4O))

        kwargs = provider.client.chat.completions.create.call_args.kwargs
        assert title == ""
        assert kwargs["model"] == "gpt-4o"
        assert kwargs["messages"][0]["content"] == "Name it"


class TestAuxiliary:

    @pytest.mark.asyncio
    async def test_generate_text(self, make_provider, make_response):
        provider = make_provider(settings=RelaySettings(default_model=GPT4O))
        provider.client.chat.completions.create.return_value = make_response("result")

        assert await provider.generate_text("prompt", "content") == "result"
        kwargs = provider.client.chat.completions.create.call_args.kwargs
        assert kwargs["messages"] == [
            {"role": "system", "content": "prompt"},
            {"role": "user", "content": "content"},
        ]

    @pytest.mark.asyncio
    async def test_suggestions(self, make_provider):
        provider = make_provider()
        provider.client.post.return_value = _json_response({"questions": ["Why?", "", "How?"]})
        history = [Message(role="user", content="q"), Message(role="assistant", content="a")]

        suggestions = await provider.suggestions(history, Assistant(model=GPT4O))

        assert [s.content for s in suggestions] == ["Why?", "How?"]
        args, kwargs = provider.client.post.call_args
        assert args[0] == "/advice_questions"
        assert kwargs["body"]["messages"] == [{"role": "user", "content": "q"}]
        assert kwargs["body"]["max_tokens"] == 0

    @pytest.mark.asyncio
    async def test_suggestions_without_model_or_payload(self, make_provider):
        provider = make_provider()
        assert await provider.suggestions([], Assistant()) == []
        provider.client.post.assert_not_called()

        provider.client.post.return_value = _json_response({})
        assert await provider.suggestions([], Assistant(model=GPT4O)) == []

    @pytest.mark.asyncio
    async def test_check_valid(self, make_provider, make_response):
        provider = make_provider()
        provider.client.chat.completions.create.return_value = make_response("hello")

        result = await provider.check(GPT4O)

        assert result.valid is True
        assert result.error is None
        kwargs = provider.client.chat.completions.create.call_args.kwargs
        assert kwargs["messages"] == [{"role": "user", "content": "hi"}]
        assert kwargs["max_tokens"] == 100

    @pytest.mark.asyncio
    async def test_check_never_raises(self, make_provider):
        provider = make_provider()
        error = RuntimeError("401 unauthorized")
        provider.client.chat.completions.create.side_effect = error

        result = await provider.check(GPT4O)

        assert result.valid is False
        assert result.error is error

    @pytest.mark.asyncio
    async def test_check_without_model(self, make_provider):
        result = await make_provider().check(None)
        assert result.valid is False
        assert isinstance(result.error, ValueError)

    @pytest.mark.asyncio
    async def test_models_standard_listing(self, make_provider):
        provider = make_provider()
        provider.client.get.return_value = _json_response({"data": [
            {"id": "gpt-4o", "owned_by": "openai"},
            {"id": "whisper-1", "owned_by": "openai"},
        ]})

        models = await provider.models()

        assert [m.id for m in models] == ["gpt-4o"]
        assert models[0].owned_by == "openai"
        assert models[0].provider == "openai"

    @pytest.mark.asyncio
    async def test_models_github_listing(self, make_provider):
        provider = make_provider("github")
        provider.client.get.return_value = _json_response([
            {"name": "gpt-4o", "summary": "Omni", "publisher": "OpenAI"},
        ])

        models = await provider.models()

        assert models[0].id == "gpt-4o"
        assert models[0].description == "Omni"
        assert models[0].owned_by == "OpenAI"

    @pytest.mark.asyncio
    async def test_models_swallow_errors(self, make_provider):
        provider = make_provider()
        provider.client.get.side_effect = ConnectionError("down")
        assert await provider.models() == []

    @pytest.mark.asyncio
    async def test_models_malformed_entry_gives_empty_list(self, make_provider):
        provider = make_provider("together")
        provider.client.get.return_value = _json_response([{"id": 123}])

        assert await provider.models() == []

    @pytest.mark.asyncio
    async def test_models_resolver_failure_gives_empty_list(self, make_provider):
        resolver = MagicMock()
        resolver.is_supported_model.side_effect = RuntimeError("registry down")
        provider = make_provider(resolver=resolver)
        provider.client.get.return_value = _json_response({"data": [{"id": "gpt-4o"}]})

        assert await provider.models() == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("seed, expected", [("12.5", 12), (" 7", 7), ("abc", None)])
    async def test_generate_image_seed_parsing(self, make_provider, seed, expected):
        provider = make_provider("silicon")
        provider.client.post.return_value = _json_response({"data": []})

        await provider.generate_image(GenerateImageParams(model="flux", prompt="a cat", seed=seed))

        body = provider.client.post.call_args.kwargs["body"]
        assert body.get("seed") == expected

    @pytest.mark.asyncio
    async def test_generate_image(self, make_provider):
        provider = make_provider("silicon")
        provider.client.post.return_value = _json_response({"data": [{"url": "https://img/1"}, {"url": "https://img/2"}]})

        urls = await provider.generate_image(GenerateImageParams(model="flux", prompt="a cat", seed="42"))

        assert urls == ["https://img/1", "https://img/2"]
        args, kwargs = provider.client.post.call_args
        assert args[0] == "/images/generations"
        assert kwargs["body"] == {"model": "flux", "prompt": "a cat", "seed": 42}

    @pytest.mark.asyncio
    async def test_generate_image_cancelled_in_flight(self, make_provider):
        provider = make_provider("silicon")
        started = asyncio.Event()
        cancelled = asyncio.Event()

        async def slow_post(*args, **kwargs):
            started.set()
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.set()
                raise

        provider.client.post = MagicMock(side_effect=slow_post)
        token = CancellationToken()

        async def cancel_soon():
            await started.wait()
            token.cancel()

        canceller = asyncio.create_task(cancel_soon())
        with pytest.raises(ImageGenerationCancelled):
            await provider.generate_image(GenerateImageParams(model="flux", prompt="a cat"), cancel_token=token)
        await canceller

        assert cancelled.is_set()

    @pytest.mark.asyncio
    async def test_generate_image_already_cancelled(self, make_provider):
        provider = make_provider("silicon")
        token = CancellationToken()
        token.cancel()

        with pytest.raises(ImageGenerationCancelled):
            await provider.generate_image(GenerateImageParams(model="flux", prompt="a cat"), cancel_token=token)

    @pytest.mark.asyncio
    async def test_embedding_dimensions(self, make_provider):
        provider = make_provider()
        provider.client.embeddings.create.return_value = SimpleNamespace(
            data=[SimpleNamespace(embedding=[0.1] * 1536)]
        )

        assert await provider.get_embedding_dimensions(Model(id="text-embedding-3-small", provider="openai")) == 1536
