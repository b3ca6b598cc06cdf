"""Client for the Gemini generateContent endpoint."""

import httpx
import structlog

from mathquest.config import Settings

logger = structlog.get_logger()


class GenerationFailed(Exception):
    """The generation backend did not produce usable text."""


class ProblemGenerator:
    def __init__(
        self,
        *,
        api_key: str | None,
        model: str,
        base_url: str,
        timeout_seconds: float,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._timeout = httpx.Timeout(timeout_seconds)
        self._transport = transport

    @classmethod
    def from_settings(cls, config: Settings) -> "ProblemGenerator":
        return cls(
            api_key=config.gemini_api_key,
            model=config.gemini_model,
            base_url=config.gemini_base_url,
            timeout_seconds=config.generation_timeout_seconds,
        )

    @property
    def endpoint(self) -> str:
        return f"{self._base_url}/models/{self._model}:generateContent"

    async def generate(self, prompt: str) -> str:
        """
        Send the prompt and return the generated text.

        Raises GenerationFailed on timeout, HTTP or transport errors, and on
        responses without any text part.
        """
        if not self._api_key:
            raise GenerationFailed("Generation backend is not configured")

        body = {"contents": [{"role": "user", "parts": [{"text": prompt}]}]}

        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self._timeout) as client:
                response = await client.post(
                    self.endpoint,
                    headers={"x-goog-api-key": self._api_key},
                    json=body,
                )
                response.raise_for_status()
                payload = response.json()
        except httpx.TimeoutException as e:
            logger.error("generation_timeout", model=self._model)
            raise GenerationFailed("Generation backend timed out") from e
        except httpx.HTTPStatusError as e:
            logger.error(
                "generation_http_error",
                model=self._model,
                status_code=e.response.status_code,
            )
            raise GenerationFailed(f"Generation backend returned {e.response.status_code}") from e
        except httpx.RequestError as e:
            logger.error("generation_request_error", model=self._model, error=str(e))
            raise GenerationFailed("Generation backend unreachable") from e
        except ValueError as e:
            logger.error("generation_malformed_response", model=self._model)
            raise GenerationFailed("Generation backend returned invalid JSON") from e

        return extract_text(payload)


def extract_text(payload: dict) -> str:
    """Join the text parts of the first candidate."""
    try:
        parts = payload["candidates"][0]["content"]["parts"]
    except (KeyError, IndexError, TypeError) as e:
        reason = payload.get("promptFeedback", {}).get("blockReason") if isinstance(payload, dict) else None
        logger.error("generation_malformed_response", block_reason=reason)
        raise GenerationFailed("Generation backend returned no candidates") from e

    text = "".join(part.get("text", "") for part in parts if isinstance(part, dict))
    if not text.strip():
        raise GenerationFailed("Generation backend returned empty text")
    return text
