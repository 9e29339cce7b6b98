from types import MappingProxyType
from typing import Any, Optional

import httpx

from app.logging_config import get_logger
from app.services.errors import AIBackendError
from app.services.llm.base import LLMProvider

logger = get_logger("llm.gemini")

GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

PROMPT_TEMPLATE = "Contexto previo:\n{context}\n\nNueva entrada:\n{new_text}\n\nRespuesta:"

GENERATION_CONFIG = MappingProxyType(
    {
        "temperature": 0.7,
        "maxOutputTokens": 1024,
        "topP": 0.8,
        "topK": 40,
    }
)

# What the end user sees when no real answer is available
REQUEST_ERROR_RESPONSE = "Lo siento, ocurrió un error al procesar la petición."
NO_ANSWER_RESPONSE = "No se recibió respuesta"
PROCESSING_ERROR_RESPONSE = "Error procesando la respuesta JSON"

FALLBACK_RESPONSES = frozenset({REQUEST_ERROR_RESPONSE, NO_ANSWER_RESPONSE, PROCESSING_ERROR_RESPONSE})

# candidates[0].content.parts[0].text
ANSWER_PATH = ("candidates", 0, "content", "parts", 0, "text")


def build_prompt(context: str, new_text: str) -> str:
    return PROMPT_TEMPLATE.format(context=context, new_text=new_text)


def build_payload(prompt: str) -> dict:
    return {
        "contents": [{"parts": [{"text": prompt}]}],
        "generationConfig": dict(GENERATION_CONFIG),
    }


def extract_answer(data: Any) -> str:
    """Walk ANSWER_PATH through a generateContent response.

    A missing or null step means the model produced no answer; a step of the
    wrong type means the response shape is not what we expect.
    """
    node = data
    for step in ANSWER_PATH:
        if isinstance(step, int):
            if not isinstance(node, list):
                logger.error(f"Gemini response: expected a list before index {step}, got {type(node).__name__}")
                return PROCESSING_ERROR_RESPONSE
            if len(node) <= step:
                logger.warning("Gemini response has no answer", extra={"context": {"missing": step}})
                return NO_ANSWER_RESPONSE
        else:
            if not isinstance(node, dict):
                logger.error(f"Gemini response: expected an object before '{step}', got {type(node).__name__}")
                return PROCESSING_ERROR_RESPONSE
            if node.get(step) is None:
                logger.warning("Gemini response has no answer", extra={"context": {"missing": step}})
                return NO_ANSWER_RESPONSE
        node = node[step]

    if not isinstance(node, str):
        logger.error(f"Gemini response: answer text is {type(node).__name__}, not a string")
        return PROCESSING_ERROR_RESPONSE
    return node


class GeminiProvider(LLMProvider):
    """Google Gemini generateContent provider."""

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.0-flash",
        timeout_seconds: float = 60.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.timeout_seconds = timeout_seconds
        self.url = GEMINI_URL.format(model=model)
        self._client = client

    async def _post(self, payload: dict) -> httpx.Response:
        params = {"key": self.api_key}
        if self._client is not None:
            return await self._client.post(self.url, params=params, json=payload)
        async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
            return await client.post(self.url, params=params, json=payload)

    async def _generate(self, payload: dict) -> httpx.Response:
        try:
            response = await self._post(payload)
        except Exception as e:
            raise AIBackendError(f"Gemini request failed: {e}") from e

        logger.debug(f"Gemini response status: {response.status_code}")
        if not response.is_success:
            raise AIBackendError(f"Gemini error: {response.status_code} - {response.text[:500]}")
        return response

    async def ask(self, context: str, new_text: str) -> str:
        payload = build_payload(build_prompt(context, new_text))
        logger.debug(f"Gemini request: model={self.model}, context_chars={len(context)}")

        try:
            response = await self._generate(payload)
        except AIBackendError as e:
            logger.error(str(e))
            return REQUEST_ERROR_RESPONSE

        try:
            data = response.json()
        except ValueError as e:
            logger.error(f"Gemini response is not JSON: {e}")
            return PROCESSING_ERROR_RESPONSE

        return extract_answer(data)

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
