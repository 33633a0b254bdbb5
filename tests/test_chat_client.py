"""Tests for the chat client: blocking calls, function loop and streaming."""

import json
from dataclasses import dataclass
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from fakes import (
    FakeStream,
    make_chunk,
    make_response,
    make_tool_call,
    make_tool_call_delta,
    text_chunks,
)
from ragent.chat import ChatClient, CompletionResult
from ragent.conversation_logger import ConversationLogger
from ragent.errors import FunctionLoopExceeded, RagentError, UnknownFunctionError
from ragent.prompt import ChatOptions, Prompt, Role, build_prompt
from ragent.tools import FunctionTool, ToolRegistry


@dataclass
class WeatherRequest:
    location: str
    unit: str = "C"


def weather_tool() -> FunctionTool:
    temps = {"San Francisco": 30, "Tokyo": 10, "Paris": 15}
    return FunctionTool(
        lambda r: f"{temps.get(r.location.split(',')[0], 0)}{r.unit}",
        name="getCurrentWeather",
        description="Get the weather in location",
        input_type=WeatherRequest,
    )


@pytest.fixture
def mock_client() -> AsyncMock:
    return AsyncMock()


def sent_messages(mock_client: AsyncMock, call_index: int) -> list[dict]:
    return mock_client.chat.completions.create.call_args_list[call_index].kwargs["messages"]


class TestCall:
    """Tests for blocking completions."""

    @pytest.mark.asyncio
    async def test_simple_response(self, mock_client: AsyncMock):
        mock_client.chat.completions.create.return_value = make_response("Hello!")
        client = ChatClient(mock_client)

        result = await client.call(Prompt.of("Hi"))

        assert result.text == "Hello!"
        assert result.finish_reason == "stop"
        assert result.usage.total_tokens == 15
        kwargs = mock_client.chat.completions.create.call_args.kwargs
        assert kwargs["messages"] == [{"role": "user", "content": "Hi"}]
        assert "tools" not in kwargs

    @pytest.mark.asyncio
    async def test_options_merged_over_defaults(self, mock_client: AsyncMock):
        mock_client.chat.completions.create.return_value = make_response("ok")
        client = ChatClient(mock_client, options=ChatOptions(model="base", temperature=0.7))

        await client.call(Prompt.of("Hi", ChatOptions(temperature=0.0, max_tokens=5)))

        kwargs = mock_client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "base"
        assert kwargs["temperature"] == 0.0
        assert kwargs["max_tokens"] == 5

    @pytest.mark.asyncio
    async def test_function_call_round_trip(self, mock_client: AsyncMock):
        mock_client.chat.completions.create.side_effect = [
            make_response(tool_calls=[
                make_tool_call("c1", "getCurrentWeather", '{"location": "San Francisco, CA"}'),
                make_tool_call("c2", "getCurrentWeather", '{"location": "Tokyo, Japan"}'),
                make_tool_call("c3", "getCurrentWeather", '{"location": "Paris, France"}'),
            ]),
            make_response("It is 30C in San Francisco, 10C in Tokyo and 15C in Paris."),
        ]
        client = ChatClient(mock_client)
        prompt = build_prompt("What's the weather like in San Francisco, Tokyo, and Paris?", functions=[weather_tool()])

        result = await client.call(prompt)

        assert "30" in result.text and "10" in result.text and "15" in result.text
        assert mock_client.chat.completions.create.call_count == 2
        assert result.usage.total_tokens == 30

        first_kwargs = mock_client.chat.completions.create.call_args_list[0].kwargs
        assert first_kwargs["tools"][0]["function"]["name"] == "getCurrentWeather"
        assert first_kwargs["tool_choice"] == "auto"

        second = sent_messages(mock_client, 1)
        assert second[1]["role"] == "assistant"
        assert len(second[1]["tool_calls"]) == 3
        tool_messages = [m for m in second if m["role"] == "tool"]
        assert [m["content"] for m in tool_messages] == ["30C", "10C", "15C"]
        assert [m["tool_call_id"] for m in tool_messages] == ["c1", "c2", "c3"]

    @pytest.mark.asyncio
    async def test_registered_function_enabled_by_name(self, mock_client: AsyncMock):
        mock_client.chat.completions.create.side_effect = [
            make_response(tool_calls=[make_tool_call("c1", "getCurrentWeather", '{"location": "Paris"}')]),
            make_response("15C"),
        ]
        client = ChatClient(mock_client, registry=ToolRegistry([weather_tool()]))

        result = await client.call(
            Prompt.of("Weather in Paris?", ChatOptions(function_names=("getCurrentWeather",)))
        )

        assert result.text == "15C"

    @pytest.mark.asyncio
    async def test_registered_function_not_sent_unless_named(self, mock_client: AsyncMock):
        mock_client.chat.completions.create.return_value = make_response("ok")
        client = ChatClient(mock_client, registry=ToolRegistry([weather_tool()]))

        await client.call(Prompt.of("Hi"))

        assert "tools" not in mock_client.chat.completions.create.call_args.kwargs

    @pytest.mark.asyncio
    async def test_malformed_arguments_reported_to_model(self, mock_client: AsyncMock):
        mock_client.chat.completions.create.side_effect = [
            make_response(tool_calls=[make_tool_call("c1", "getCurrentWeather", "{not json")]),
            make_response("sorry"),
        ]
        client = ChatClient(mock_client)

        result = await client.call(build_prompt("Weather?", functions=[weather_tool()]))

        assert result.text == "sorry"
        tool_message = sent_messages(mock_client, 1)[-1]
        assert tool_message["role"] == "tool"
        assert "Error" in tool_message["content"]

    @pytest.mark.asyncio
    async def test_function_loop_exceeded(self, mock_client: AsyncMock):
        mock_client.chat.completions.create.return_value = make_response(
            tool_calls=[make_tool_call("c1", "getCurrentWeather", '{"location": "Paris"}')]
        )
        client = ChatClient(mock_client, max_function_rounds=3)

        with pytest.raises(FunctionLoopExceeded) as exc_info:
            await client.call(build_prompt("Weather?", functions=[weather_tool()]))

        assert exc_info.value.max_rounds == 3
        assert exc_info.value.function_names == ["getCurrentWeather"]
        assert mock_client.chat.completions.create.call_count == 4

    @pytest.mark.asyncio
    async def test_unknown_function_name_rejected(self, mock_client: AsyncMock):
        client = ChatClient(mock_client, registry=ToolRegistry([weather_tool()]))

        with pytest.raises(UnknownFunctionError) as exc_info:
            await client.call(Prompt.of("Hi", ChatOptions(function_names=("missing",))))

        assert exc_info.value.name == "missing"
        assert isinstance(exc_info.value, RagentError)
        mock_client.chat.completions.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_zero_rounds_fails_on_first_request(self, mock_client: AsyncMock):
        mock_client.chat.completions.create.return_value = make_response(
            tool_calls=[make_tool_call("c1", "getCurrentWeather", "{}")]
        )
        client = ChatClient(mock_client, max_function_rounds=0)

        with pytest.raises(FunctionLoopExceeded):
            await client.call(build_prompt("Weather?", functions=[weather_tool()]))
        assert mock_client.chat.completions.create.call_count == 1

    @pytest.mark.asyncio
    async def test_conversation_log(self, mock_client: AsyncMock, tmp_path: Path):
        mock_client.chat.completions.create.side_effect = [
            make_response(tool_calls=[make_tool_call("c1", "getCurrentWeather", '{"location": "Paris"}')]),
            make_response("15C"),
        ]
        conv_logger = ConversationLogger(tmp_path)
        client = ChatClient(mock_client, conversation_logger=conv_logger)

        await client.call(build_prompt("Weather?", functions=[weather_tool()]), conversation_id="conv1")

        lines = conv_logger.log_file("conv1").read_text().strip().split("\n")
        events = [json.loads(line)["event"] for line in lines]
        assert events == [
            "llm_request",
            "llm_response",
            "function_call",
            "function_result",
            "llm_request",
            "llm_response",
        ]


class TestStream:
    """Tests for incremental completions."""

    @pytest.mark.asyncio
    async def test_chunks_concatenate_to_full_text(self, mock_client: AsyncMock):
        stream = FakeStream(text_chunks("Hel", "lo", " world"))
        mock_client.chat.completions.create.return_value = stream
        client = ChatClient(mock_client)

        chunks = [c async for c in client.stream(Prompt.of("Hi"))]

        assert [c.text for c in chunks] == ["Hel", "lo", " world", ""]
        assert CompletionResult.concat(chunks).text == "Hello world"
        assert stream.closed
        assert mock_client.chat.completions.create.call_args.kwargs["stream"] is True

    @pytest.mark.asyncio
    async def test_final_chunk_carries_finish_reason_and_usage(self, mock_client: AsyncMock):
        mock_client.chat.completions.create.return_value = FakeStream(text_chunks("Hel", "lo"))
        client = ChatClient(mock_client)

        chunks = [c async for c in client.stream(Prompt.of("Hi"))]
        joined = CompletionResult.concat(chunks)

        assert chunks[-1].text == ""
        assert chunks[-1].finish_reason == "stop"
        assert joined.finish_reason == "stop"
        assert joined.usage is not None
        assert (joined.usage.prompt_tokens, joined.usage.completion_tokens) == (10, 2)
        assert joined.model == "test-model"
        assert joined.id == "chatcmpl-stream"

    @pytest.mark.asyncio
    async def test_streamed_usage_summed_across_function_rounds(self, mock_client: AsyncMock):
        first = FakeStream([
            make_chunk(tool_calls=[make_tool_call_delta(0, "c1", "getCurrentWeather", '{"location": "Paris"}')]),
            make_chunk(finish_reason="tool_calls", usage=(7, 3)),
        ])
        second = FakeStream(text_chunks("15C"))
        mock_client.chat.completions.create.side_effect = [first, second]
        client = ChatClient(mock_client)

        chunks = [c async for c in client.stream(build_prompt("Weather?", functions=[weather_tool()]))]
        joined = CompletionResult.concat(chunks)

        assert [c.finish_reason for c in chunks] == [None, "stop"]
        assert joined.text == "15C"
        assert joined.finish_reason == "stop"
        assert (joined.usage.prompt_tokens, joined.usage.completion_tokens) == (17, 4)

    @pytest.mark.asyncio
    async def test_stream_is_lazy(self, mock_client: AsyncMock):
        mock_client.chat.completions.create.return_value = FakeStream(text_chunks("a"))
        client = ChatClient(mock_client)

        client.stream(Prompt.of("Hi"))

        mock_client.chat.completions.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_close_early_closes_underlying_stream(self, mock_client: AsyncMock):
        stream = FakeStream(text_chunks("one", "two", "three", "four"))
        mock_client.chat.completions.create.return_value = stream
        client = ChatClient(mock_client)

        iterator = client.stream(Prompt.of("Hi"))
        first = await iterator.__anext__()
        await iterator.aclose()

        assert first.text == "one"
        assert stream.closed
        assert stream.consumed == 1

    @pytest.mark.asyncio
    async def test_streamed_function_call(self, mock_client: AsyncMock):
        first = FakeStream([
            make_chunk(tool_calls=[make_tool_call_delta(0, "c1", "getCurrentWeather", '{"loca')]),
            make_chunk(tool_calls=[make_tool_call_delta(0, None, None, 'tion": "Tokyo"}')]),
            make_chunk(finish_reason="tool_calls"),
        ])
        second = FakeStream(text_chunks("It is ", "10C"))
        mock_client.chat.completions.create.side_effect = [first, second]
        client = ChatClient(mock_client)

        chunks = [c async for c in client.stream(build_prompt("Weather?", functions=[weather_tool()]))]

        assert "".join(c.text for c in chunks) == "It is 10C"
        assert first.closed and second.closed
        messages = sent_messages(mock_client, 1)
        assert messages[-2]["tool_calls"][0]["function"]["arguments"] == '{"location": "Tokyo"}'
        assert messages[-1] == {
            "role": "tool",
            "content": "10C",
            "tool_call_id": "c1",
            "name": "getCurrentWeather",
        }

    @pytest.mark.asyncio
    async def test_stream_function_loop_exceeded(self, mock_client: AsyncMock):
        mock_client.chat.completions.create.side_effect = lambda **kwargs: FakeStream([
            make_chunk(tool_calls=[make_tool_call_delta(0, "c1", "getCurrentWeather", '{"location": "Paris"}')]),
        ])
        client = ChatClient(mock_client, max_function_rounds=2)

        with pytest.raises(FunctionLoopExceeded):
            async for _ in client.stream(build_prompt("Weather?", functions=[weather_tool()])):
                pass
        assert mock_client.chat.completions.create.call_count == 3


class TestCompletionResult:
    """Tests for result helpers."""

    def test_concat_keeps_last_finish_reason(self):
        chunks = [CompletionResult.chunk("a"), CompletionResult.chunk("b", "stop")]
        result = CompletionResult.concat(chunks)
        assert result.text == "ab"
        assert result.finish_reason == "stop"
        assert result.result.message.role == Role.ASSISTANT

    def test_concat_empty(self):
        assert CompletionResult.concat([]).text == ""

    def test_result_without_generations(self):
        with pytest.raises(ValueError):
            CompletionResult(()).result
