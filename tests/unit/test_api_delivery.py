"""Tests for the messages API fallback delivery path."""

import json
from unittest.mock import AsyncMock, MagicMock

import anthropic
import httpx
import pytest

from claude_bridge.bridge import MessageBridge
from claude_bridge.config import BridgeConfig
from claude_bridge.context import DeliveryOptions
from claude_bridge.delivery import ApiDelivery, ApiErrorResponse, DeliveryRequest
from claude_bridge.delivery.api import error_details, is_error_payload


def api_response(text="Hello!"):
    return {
        "id": "msg_1",
        "type": "message",
        "role": "assistant",
        "model": "claude-sonnet-4-5",
        "content": [{"type": "text", "text": text}],
        "stop_reason": "end_turn",
        "usage": {"input_tokens": 12, "output_tokens": 3},
    }


def mock_client(response=None, side_effect=None):
    client = MagicMock()
    client.messages.create = AsyncMock(return_value=response, side_effect=side_effect)
    return client


async def drain(events):
    records = []
    async for record in events:
        records.append(record)
    return records


@pytest.fixture
def make_request(make_context):
    def _make(text="hello", options=None):
        return DeliveryRequest(
            content=[{"type": "text", "text": text}],
            options=options or DeliveryOptions(),
            context=make_context(),
        )
    return _make


class TestErrorPayloads:
    """Tests for error-shaped payload detection."""

    def test_is_error_payload(self):
        assert is_error_payload({"type": "error", "error": {"message": "x"}})
        assert is_error_payload({"error": "bad"})
        assert not is_error_payload(api_response())

    def test_error_details_nested(self):
        data = {"type": "error", "error": {"type": "authentication_error", "message": "invalid x-api-key"}}
        assert error_details(data) == ("authentication_error", "invalid x-api-key")

    def test_error_details_flat(self):
        assert error_details({"error": "boom"}) == ("error", "boom")
        assert error_details({"error": True}) == ("error", "Unknown API error")


class TestApiDeliverySuccess:
    """Tests for successful exchanges."""

    @pytest.mark.asyncio
    async def test_records_and_persistence(self, store, make_request):
        client = mock_client(api_response())
        delivery = ApiDelivery(BridgeConfig(), store, client_factory=lambda creds: client)
        request = make_request()

        records = await drain(await delivery.submit(request))

        assert [r["type"] for r in records] == ["system", "assistant", "result"]
        session_id = records[0]["session_id"]
        assert records[0]["subtype"] == "init"
        assert records[1]["message"]["content"] == [{"type": "text", "text": "Hello!"}]
        assert records[1]["message"]["usage"]["input_tokens"] == 12
        assert records[2]["is_error"] is False
        assert records[2]["result"] == "Hello!"

        raw = store.load_raw(session_id, request.context.project_key_path)
        assert [e["type"] for e in raw] == ["user", "assistant"]

    @pytest.mark.asyncio
    async def test_model_defaults_to_fallback(self, store, make_request):
        client = mock_client(api_response())
        delivery = ApiDelivery(BridgeConfig(fallback_model="claude-haiku-4-5"), store, client_factory=lambda c: client)

        await drain(await delivery.submit(make_request()))

        assert client.messages.create.call_args.kwargs["model"] == "claude-haiku-4-5"
        assert client.messages.create.call_args.kwargs["max_tokens"] == 8192

    @pytest.mark.asyncio
    async def test_requested_model_passed_verbatim(self, store, make_request):
        client = mock_client(api_response())
        delivery = ApiDelivery(BridgeConfig(), store, client_factory=lambda c: client)

        await drain(await delivery.submit(make_request(options=DeliveryOptions(model="claude-opus-4-1"))))

        assert client.messages.create.call_args.kwargs["model"] == "claude-opus-4-1"

    @pytest.mark.asyncio
    async def test_resume_replays_history(self, store, make_request):
        client = mock_client(api_response("second answer"))
        delivery = ApiDelivery(BridgeConfig(), store, client_factory=lambda c: client)
        request = make_request(text="follow up", options=DeliveryOptions(resume_session_id="s1"))
        project = request.context.project_key_path
        store.append("s1", project, {"type": "user", "message": {"role": "user", "content": "first"}})
        store.append("s1", project, {"type": "assistant", "message": {"role": "assistant", "content": "answer"}})

        records = await drain(await delivery.submit(request))

        messages = client.messages.create.call_args.kwargs["messages"]
        assert messages == [
            {"role": "user", "content": "first"},
            {"role": "assistant", "content": "answer"},
            {"role": "user", "content": [{"type": "text", "text": "follow up"}]},
        ]
        assert records[0]["session_id"] == "s1"
        assert len(store.load_raw("s1", project)) == 4


class TestApiDeliveryErrors:
    """Tests for error-shaped responses."""

    @pytest.mark.asyncio
    async def test_error_payload(self, store, make_request):
        error = {"type": "error", "error": {"type": "authentication_error", "message": "invalid key"}}
        client = mock_client(error)
        delivery = ApiDelivery(BridgeConfig(), store, client_factory=lambda c: client)

        events = await delivery.submit(make_request())
        records = []
        with pytest.raises(ApiErrorResponse, match="invalid key"):
            async for record in events:
                records.append(record)

        assert [r["type"] for r in records] == ["system", "assistant", "result"]
        text = records[1]["message"]["content"][0]["text"]
        assert text.startswith("API error: invalid key")
        assert "settings.json" in text
        assert records[1]["message"]["stop_reason"] == "error"
        assert records[2]["is_error"] is True

    @pytest.mark.asyncio
    async def test_error_reply_not_persisted(self, store, make_request):
        client = mock_client({"error": "nope"})
        delivery = ApiDelivery(BridgeConfig(), store, client_factory=lambda c: client)
        request = make_request()

        events = await delivery.submit(request)
        records = []
        with pytest.raises(ApiErrorResponse):
            async for record in events:
                records.append(record)

        raw = store.load_raw(records[0]["session_id"], request.context.project_key_path)
        assert [e["type"] for e in raw] == ["user"]

    @pytest.mark.asyncio
    async def test_status_error_converted(self, store, make_request):
        response = httpx.Response(401, request=httpx.Request("POST", "https://proxy.example.com/v1/messages"))
        status_error = anthropic.AuthenticationError(
            "invalid x-api-key",
            response=response,
            body={"type": "error", "error": {"type": "authentication_error", "message": "invalid x-api-key"}},
        )
        client = mock_client(side_effect=status_error)
        delivery = ApiDelivery(BridgeConfig(), store, client_factory=lambda c: client)

        events = await delivery.submit(make_request())
        with pytest.raises(ApiErrorResponse, match="invalid x-api-key"):
            await drain(events)

    @pytest.mark.asyncio
    async def test_connection_error_converted(self, store, make_request):
        request = httpx.Request("POST", "https://proxy.example.com/v1/messages")
        client = mock_client(side_effect=anthropic.APIConnectionError(request=request))
        delivery = ApiDelivery(BridgeConfig(), store, client_factory=lambda c: client)

        events = await delivery.submit(make_request())
        records = []
        with pytest.raises(ApiErrorResponse, match="Connection error"):
            async for record in events:
                records.append(record)

        assert records[1]["message"]["stop_reason"] == "error"
        assert records[1]["message"]["content"][0]["text"].startswith("API error: Connection error.")
        assert records[2]["is_error"] is True


class TestApiDeliveryThroughBridge:
    """Tests for the full line protocol of the fallback path."""

    @pytest.fixture
    def run_bridge(self, writer, store, make_context):
        async def _run(client):
            delivery = ApiDelivery(BridgeConfig(), store, client_factory=lambda c: client)
            bridge = MessageBridge(
                config=BridgeConfig(),
                writer=writer,
                store=store,
                strategy_factory=lambda config, context, has_attachments, store: delivery,
                context_resolver=lambda options: make_context(),
            )
            return await bridge.send("hello", DeliveryOptions())
        return _run

    @staticmethod
    def tagged(lines):
        """Protocol lines only; multi-line [CONTENT] text continues on untagged lines."""
        return [line for line in lines if line.startswith(("[", "{"))]

    @pytest.mark.asyncio
    async def test_error_payload_lines(self, run_bridge, output):
        error = {"type": "error", "error": {"type": "authentication_error", "message": "invalid key"}}

        result = await run_bridge(mock_client(error))

        lines = self.tagged(output.getvalue().splitlines())
        assert [line.split(" ", 1)[0] if line.startswith("[") else "<json>" for line in lines] == [
            "[MESSAGE_START]",
            "[MESSAGE]",
            "[SESSION_ID]",
            "[MESSAGE]",
            "[CONTENT]",
            "[MESSAGE]",
            "[MESSAGE_END]",
            "<json>",
        ]
        assistant = json.loads(lines[3][len("[MESSAGE] "):])
        result_record = json.loads(lines[5][len("[MESSAGE] "):])
        assert assistant["message"]["stop_reason"] == "error"
        assert result_record["is_error"] is True
        assert lines[4] == "[CONTENT] API error: invalid key"
        assert json.loads(lines[-1]) == {"success": False, "error": "invalid key"}
        assert result.success is False

    @pytest.mark.asyncio
    async def test_connection_error_lines(self, run_bridge, output):
        request = httpx.Request("POST", "https://proxy.example.com/v1/messages")

        await run_bridge(mock_client(side_effect=anthropic.APIConnectionError(request=request)))

        lines = output.getvalue().splitlines()
        assert lines[0] == "[MESSAGE_START]"
        assert lines[-2] == "[MESSAGE_END]"
        assert json.loads(lines[-1]) == {"success": False, "error": "Connection error."}
        assert any(line.startswith("[CONTENT] API error: Connection error.") for line in lines)

    @pytest.mark.asyncio
    async def test_success_lines(self, run_bridge, output):
        await run_bridge(mock_client(api_response("Hi!")))

        lines = output.getvalue().splitlines()
        assert "[CONTENT] Hi!" in lines
        session_id = next(line.split(" ", 1)[1] for line in lines if line.startswith("[SESSION_ID]"))
        assert json.loads(lines[-1]) == {"success": True, "sessionId": session_id}
