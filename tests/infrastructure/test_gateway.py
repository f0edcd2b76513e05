"""Tests for the model gateway and provider factory."""

from __future__ import annotations

import pytest
from langchain_core.messages import AIMessage, HumanMessage

from audience_lab.domain.values import ToolChoice
from audience_lab.infrastructure.config import ModelConfig
from audience_lab.infrastructure.llm import (
    LLMError,
    LLMProviderFactory,
    LLMResponseError,
    ModelGateway,
)
from audience_lab.infrastructure.llm.factory import _search_wiring
from audience_lab.infrastructure.llm.gateway import extract_sources, message_text
from audience_lab.schemas.brand import Topics
from audience_lab.testing import MockStructuredChatModel, ScriptedChatModel, ai_message, tool_call


class TestMessageHelpers:

    def test_text_from_string(self) -> None:
        assert message_text(AIMessage(content="plain")) == "plain"

    def test_text_from_blocks(self) -> None:
        msg = AIMessage(
            content=[
                {"type": "text", "text": "Hello "},
                {"type": "web_search_call", "id": "ws_1"},
                {"type": "text", "text": "world"},
            ]
        )
        assert message_text(msg) == "Hello world"

    def test_sources_deduplicated_in_order(self) -> None:
        msg = AIMessage(
            content=[
                {
                    "type": "text",
                    "text": "x",
                    "annotations": [
                        {"type": "url_citation", "url": "https://b.example", "title": "B"},
                        {"type": "url_citation", "url": "https://a.example"},
                        {"type": "url_citation", "url": "https://b.example", "title": "B again"},
                        {"type": "file_citation", "file_id": "f1"},
                    ],
                }
            ]
        )
        sources = extract_sources(msg)
        assert [s.url for s in sources] == ["https://b.example", "https://a.example"]
        assert sources[1].title == "https://a.example"

    def test_no_sources_on_plain_text(self) -> None:
        assert extract_sources(AIMessage(content="x")) == ()


class TestModelGateway:

    @pytest.mark.asyncio
    async def test_generate_text(self) -> None:
        model = MockStructuredChatModel(text_responses=["An answer"])
        result = await ModelGateway(model).generate_text("Question?", system="Be brief")
        assert result.text == "An answer"
        assert result.sources == ()
        assert model.prompts == ["Question?"]

    @pytest.mark.asyncio
    async def test_provider_errors_become_llm_error(self) -> None:
        model = MockStructuredChatModel(text_responses=[ConnectionError("refused")])
        with pytest.raises(LLMError, match="ConnectionError: refused"):
            await ModelGateway(model).generate_text("Question?")

    @pytest.mark.asyncio
    async def test_search_pins_search_tool(self) -> None:
        model = ScriptedChatModel(responses=["found it"])
        gateway = ModelGateway(model, search_tool_name="web_search")
        result = await gateway.search("Who is @maya?")
        assert result.text == "found it"
        assert model.tool_choices == ["web_search"]

    @pytest.mark.asyncio
    async def test_generate_structured(self) -> None:
        topics = Topics(topics=["a", "b", "c", "d", "e"])
        model = MockStructuredChatModel(structured_responses=[topics])
        result = await ModelGateway(model).generate_structured("5 topics", Topics)
        assert result == topics
        assert model.structured_calls == ["Topics"]

    @pytest.mark.asyncio
    async def test_structured_failure_is_llm_error(self) -> None:
        model = MockStructuredChatModel(structured_responses=[])
        with pytest.raises(LLMError):
            await ModelGateway(model).generate_structured("5 topics", Topics)

    @pytest.mark.asyncio
    async def test_invoke_step_binds_choice(self) -> None:
        model = ScriptedChatModel(responses=[ai_message(tool_call("note", {"text": "x"}))])
        gateway = ModelGateway(model)
        message = await gateway.invoke_step(
            [HumanMessage(content="go")],
            [{"type": "function", "function": {"name": "note", "parameters": {}}}],
            ToolChoice.required(),
        )
        assert message.tool_calls[0]["name"] == "note"
        assert model.tool_choices == ["required"]

    @pytest.mark.asyncio
    async def test_invoke_step_applies_aliases(self) -> None:
        model = ScriptedChatModel(responses=[ai_message()])
        gateway = ModelGateway(model, tool_choice_aliases={"required": "any"})
        await gateway.invoke_step(
            [HumanMessage(content="go")],
            [{"type": "function", "function": {"name": "note", "parameters": {}}}],
            ToolChoice.required(),
        )
        assert model.tool_choices == ["any"]

    @pytest.mark.asyncio
    async def test_invoke_step_without_tools(self) -> None:
        model = ScriptedChatModel(responses=["just text"])
        message = await ModelGateway(model).invoke_step(
            [HumanMessage(content="go")], [], ToolChoice.auto()
        )
        assert message.content == "just text"
        assert model.tool_choices == [None]

    @pytest.mark.asyncio
    async def test_stream_wraps_errors(self) -> None:
        model = MockStructuredChatModel(text_responses=[RuntimeError("boom")])
        with pytest.raises(LLMError):
            async for _ in ModelGateway(model).stream("hi"):
                pass

    @pytest.mark.asyncio
    async def test_stream_yields_increments(self) -> None:
        model = ScriptedChatModel(responses=["Hello there friend"])
        chunks = [c async for c in ModelGateway(model).stream("hi", system="Be brief")]
        assert chunks == ["Hello", " there", " friend"]
        assert [m.type for m in model.transcripts[0]] == ["system", "human"]
        assert model.tool_choices == [None]

    @pytest.mark.asyncio
    async def test_stream_with_search_binds_tools(self) -> None:
        model = ScriptedChatModel(responses=["Found it"])
        gateway = ModelGateway(model, tool_choice_aliases={"auto": "auto"})
        history = [HumanMessage(content="hi"), AIMessage(content="hello"), HumanMessage(content="news?")]
        chunks = [c async for c in gateway.stream(history, web_search=True)]
        assert "".join(chunks) == "Found it"
        assert model.tool_choices == ["auto"]
        assert [m.content for m in model.transcripts[0]] == ["hi", "hello", "news?"]

    def test_response_error_is_llm_error(self) -> None:
        assert issubclass(LLMResponseError, LLMError)


class TestLLMProviderFactory:

    def test_builtin_providers(self) -> None:
        factory = LLMProviderFactory()
        assert factory.registered_providers == ["anthropic", "openai"]
        assert "openai" in factory

    def test_unknown_provider(self) -> None:
        with pytest.raises(ValueError, match="Unknown provider"):
            LLMProviderFactory().create("mystery")

    def test_register_custom(self) -> None:
        factory = LLMProviderFactory(auto_discover=False)
        factory.register("scripted", lambda **kw: ScriptedChatModel(responses=[]))
        model = factory.create("scripted", model="ignored")
        assert isinstance(model, ScriptedChatModel)

    def test_duplicate_registration(self) -> None:
        factory = LLMProviderFactory()
        with pytest.raises(ValueError, match="already registered"):
            factory.register("openai", lambda **kw: None)
        factory.register("openai", lambda **kw: None, overwrite=True)


class TestSearchWiring:

    def test_openai_location(self) -> None:
        tools, name = _search_wiring(ModelConfig(search_country="DE"))
        assert name == "web_search_preview"
        assert tools[0]["user_location"]["country"] == "DE"

    def test_anthropic_server_tool(self) -> None:
        tools, name = _search_wiring(ModelConfig(provider="anthropic"))
        assert name == "web_search"
        assert tools[0]["type"].startswith("web_search_")
