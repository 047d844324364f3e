"""Tests for single-model invocation and failure classification."""
import asyncio

import pytest
from google.genai import errors

from core.config import Settings
from core.exceptions import (
    AIEmptyResponseError,
    AIRateLimitedError,
    AIServiceError,
    AITimeoutError,
    ConfigurationError,
)
from schemas.generation_schema import GenerationModel
from services.generation_invoker import GenerationInvoker

MODEL = GenerationModel(model_id="gemini-2.5-flash", provider="google", display_name="Gemini 2.5 Flash")


def _api_error(cls, code, status):
    return cls(code, {"error": {"code": code, "message": "upstream detail", "status": status}})


def test_returns_raw_text_with_deterministic_config(fake_client, settings):
    client = fake_client('{"meals": []}')
    text = asyncio.run(GenerationInvoker(client, settings).invoke("prompt", MODEL))

    assert text == '{"meals": []}'
    assert client.called_models == ["gemini-2.5-flash"]
    assert client.calls[0]["contents"] == "prompt"
    config = client.calls[0]["config"]
    assert config.temperature == pytest.approx(0.1)
    assert config.max_output_tokens == 8000
    assert config.response_mime_type == "application/json"


def test_rate_limit_is_classified(fake_client, settings):
    client = fake_client(_api_error(errors.ClientError, 429, "RESOURCE_EXHAUSTED"))
    with pytest.raises(AIRateLimitedError) as exc_info:
        asyncio.run(GenerationInvoker(client, settings).invoke("prompt", MODEL))
    assert exc_info.value.code == "AI_RATE_LIMITED"
    assert exc_info.value.is_retryable is True
    assert exc_info.value.model_id == "gemini-2.5-flash"
    assert len(client.calls) == 1


def test_other_statuses_are_service_errors(fake_client, settings):
    client = fake_client(_api_error(errors.ServerError, 503, "UNAVAILABLE"))
    with pytest.raises(AIServiceError) as exc_info:
        asyncio.run(GenerationInvoker(client, settings).invoke("prompt", MODEL))
    assert exc_info.value.code == "AI_SERVICE_ERROR"
    assert exc_info.value.details["upstream_status"] == 503
    assert "upstream detail" not in exc_info.value.message


def test_transport_failures_are_service_errors(fake_client, settings):
    client = fake_client(ConnectionResetError("socket closed"))
    with pytest.raises(AIServiceError):
        asyncio.run(GenerationInvoker(client, settings).invoke("prompt", MODEL))


@pytest.mark.parametrize("text", [None, "", "   "])
def test_empty_body_is_classified(fake_client, settings, text):
    client = fake_client(text)
    with pytest.raises(AIEmptyResponseError) as exc_info:
        asyncio.run(GenerationInvoker(client, settings).invoke("prompt", MODEL))
    assert exc_info.value.code == "AI_SERVICE_ERROR"
    assert exc_info.value.is_retryable is True


def test_client_side_deadline_cancels_the_call(fake_client):
    """The call is abandoned after the configured deadline and classified as a timeout."""
    state = {"cancelled": False}

    async def slow():
        try:
            await asyncio.sleep(5)
        except asyncio.CancelledError:
            state["cancelled"] = True
            raise

    settings = Settings(GEMINI_API_KEY="test-key", AI_REQUEST_TIMEOUT_SECONDS=0.05)
    client = fake_client(slow)
    with pytest.raises(AITimeoutError) as exc_info:
        asyncio.run(GenerationInvoker(client, settings).invoke("prompt", MODEL))
    assert exc_info.value.code == "AI_TIMEOUT"
    assert exc_info.value.status_code == 504
    assert state["cancelled"] is True


def test_missing_api_key_is_a_configuration_error():
    invoker = GenerationInvoker(settings=Settings(GEMINI_API_KEY=""))
    with pytest.raises(ConfigurationError) as exc_info:
        asyncio.run(invoker.invoke("prompt", MODEL))
    assert exc_info.value.details == {"config_key": "GEMINI_API_KEY"}
