"""
Completion service client (OpenAI-compatible ``/chat/completions``).

Returns the assistant message text unchanged; locating and validating any
JSON inside it is the caller's job.  Callers go through a RequestThrottle:

    text = await throttle.submit(lambda: client.complete(system, user))
"""
import base64
import logging
import mimetypes
from pathlib import Path

import httpx

from grylin.core.config import settings
from grylin.core.errors import CompletionError

logger = logging.getLogger(__name__)


class CompletionClient:
    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        *,
        timeout: float | None = None,
        http: httpx.AsyncClient | None = None,
    ):
        self.base_url = (base_url or settings.completion_api_url).rstrip("/")
        self._api_key = api_key if api_key is not None else settings.completion_api_key
        self._timeout = timeout or settings.completion_timeout_seconds
        self._http = http

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    async def _post(self, payload: dict) -> str:
        url = f"{self.base_url}/chat/completions"
        try:
            if self._http is not None:
                resp = await self._http.post(url, json=payload, headers=self._headers())
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    resp = await client.post(url, json=payload, headers=self._headers())
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error("Completion request failed: %d %s", e.response.status_code, e.response.text[:200])
            raise CompletionError(f"Completion service returned {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.error("Completion request failed: %s", e)
            raise CompletionError(f"Completion service unreachable: {e}") from e

        data = resp.json()
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise CompletionError("No response from AI") from e
        if not content:
            raise CompletionError("No response from AI")
        return content

    async def complete(
        self,
        system_prompt: str,
        user_message: str,
        model: str | None = None,
        temperature: float = 0.1,
        max_tokens: int = 1024,
    ) -> str:
        payload = {
            "model": model or settings.completion_model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_message},
            ],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        return await self._post(payload)

    async def complete_vision(
        self,
        prompt: str,
        image_url: str,
        model: str | None = None,
        temperature: float = 0.1,
        max_tokens: int = 1024,
    ) -> str:
        """Send one image (URL or ``data:`` URI) with an instruction prompt."""
        payload = {
            "model": model or settings.vision_model,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": prompt},
                        {"type": "image_url", "image_url": {"url": image_url}},
                    ],
                }
            ],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        return await self._post(payload)


def image_data_uri(image_path: str | Path) -> str:
    """Inline a local image as a base64 ``data:`` URI for the vision endpoint."""
    path = Path(image_path)
    mime = mimetypes.guess_type(path.name)[0] or "image/jpeg"
    encoded = base64.b64encode(path.read_bytes()).decode()
    return f"data:{mime};base64,{encoded}"
