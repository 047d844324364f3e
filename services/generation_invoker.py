"""Single-shot model invocation with a hard client-side deadline.

One call, one model, one classified outcome. Retrying (and picking the
fallback model) is the orchestrator's job, never this module's.
"""

import asyncio

from google import genai
from google.genai import errors, types

from core.config import get_settings
from core.exceptions import (
    AIEmptyResponseError,
    AIRateLimitedError,
    AIServiceError,
    AITimeoutError,
    ConfigurationError,
)
from core.logger import get_logger
from schemas.generation_schema import GenerationModel

logger = get_logger("services.generation_invoker")


class GenerationInvoker:
    """Submits a prompt to the completion service and classifies failures."""

    def __init__(self, client=None, settings=None):
        """Initialize the invoker.

        Args:
            client: Optional pre-built `genai.Client` (or a stand-in exposing
                `aio.models.generate_content`); created lazily otherwise.
            settings: Optional settings override.
        """
        self.settings = settings or get_settings()
        self._client = client

    @property
    def client(self):
        if self._client is None:
            api_key = self.settings.GEMINI_API_KEY
            if not api_key:
                raise ConfigurationError("GEMINI_API_KEY is not configured", config_key="GEMINI_API_KEY")
            self._client = genai.Client(
                api_key=api_key,
                http_options=types.HttpOptions(timeout=int(self.settings.AI_TRANSPORT_TIMEOUT_SECONDS * 1000)),
            )
        return self._client

    def generation_config(self) -> types.GenerateContentConfig:
        return types.GenerateContentConfig(
            temperature=self.settings.AI_TEMPERATURE,
            max_output_tokens=self.settings.AI_MAX_OUTPUT_TOKENS,
            response_mime_type="application/json",
        )

    async def invoke(self, prompt: str, model: GenerationModel) -> str:
        """Run the prompt against one model.

        Args:
            prompt: Compiled prompt text.
            model: Model to call.

        Returns:
            The raw response text.

        Raises:
            AITimeoutError: The client-side deadline expired; the in-flight
                call is cancelled.
            AIRateLimitedError: The provider answered 429.
            AIServiceError: Any other provider status or transport failure.
            AIEmptyResponseError: The provider answered without text.
            ConfigurationError: No API key is configured.
        """
        client = self.client
        timeout = self.settings.AI_REQUEST_TIMEOUT_SECONDS
        logger.info("Invoking model %s (%s), prompt length %s", model.model_id, model.provider, len(prompt))
        try:
            response = await asyncio.wait_for(
                client.aio.models.generate_content(
                    model=model.model_id,
                    contents=prompt,
                    config=self.generation_config(),
                ),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Model %s timed out after %ss", model.model_id, timeout)
            raise AITimeoutError(f"Model call exceeded {timeout}s", model_id=model.model_id)
        except errors.APIError as exc:
            logger.warning("Model %s returned status %s: %s", model.model_id, exc.code, exc.message)
            if exc.code == 429:
                raise AIRateLimitedError("Provider rate limited the request", model_id=model.model_id, status=429)
            raise AIServiceError(f"Provider returned status {exc.code}", model_id=model.model_id, status=exc.code)
        except Exception as exc:
            logger.warning("Transport failure calling %s: %s", model.model_id, exc, exc_info=True)
            raise AIServiceError(f"Transport failure: {type(exc).__name__}", model_id=model.model_id)

        text = getattr(response, "text", None)
        if not text or not text.strip():
            logger.warning("Model %s returned an empty body", model.model_id)
            raise AIEmptyResponseError("Provider returned an empty response", model_id=model.model_id)
        logger.info("Model %s answered with %s characters", model.model_id, len(text))
        return text
