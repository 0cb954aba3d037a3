"""
Completion client for OpenAI-compatible chat completion endpoints.

Sends a system prompt and a user prompt to ``/chat/completions`` and returns
the generated text, or a parsed JSON object in JSON mode.
"""

import json
import logging
import re
import time
from typing import Any, Optional

import requests

from docqa.exceptions import CompletionProviderError

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = (429, 502, 503, 504)

_FENCE_PATTERN = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


class ChatCompletionLLM:
    """LLM client for OpenAI-compatible endpoints."""

    def __init__(
        self,
        endpoint_url: str,
        model: str,
        api_key: Optional[str] = None,
        timeout: int = 120,
        max_retries: int = 3,
        retry_delay: float = 2.0,
    ):
        """
        Initialize the completion client.

        Args:
            endpoint_url: Full URL to the /chat/completions endpoint
            model: Completion model name
            api_key: Bearer token, omitted from requests when None
            timeout: Request timeout in seconds
            max_retries: Maximum attempts for rate limiting, gateway errors and timeouts
            retry_delay: Initial delay between retries (uses exponential backoff)
        """
        self.endpoint_url = endpoint_url
        self.model = model
        self.api_key = api_key
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay

    @property
    def headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def invoke(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.7,
        max_tokens: int = 800,
    ) -> str:
        """
        Call the model with a system and a user prompt.

        Retries with exponential backoff on 429/502/503/504 responses,
        timeouts and connection errors.

        Returns:
            The generated response text

        Raises:
            CompletionProviderError: If the request fails after all retries
                or the response carries no message content
        """
        payload = self._build_payload(system_prompt, user_prompt, temperature, max_tokens)
        return self._extract_content(self._post(payload))

    def invoke_json(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.5,
        max_tokens: int = 800,
    ) -> dict[str, Any]:
        """
        Call the model in JSON mode and parse its reply.

        Raises:
            CompletionProviderError: If the request fails or the reply is not a JSON object
        """
        payload = self._build_payload(system_prompt, user_prompt, temperature, max_tokens)
        payload["response_format"] = {"type": "json_object"}
        content = self._extract_content(self._post(payload))
        return parse_json_reply(content)

    def _build_payload(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float,
        max_tokens: int,
    ) -> dict[str, Any]:
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }

    def _post(self, payload: dict[str, Any]) -> dict[str, Any]:
        for attempt in range(self.max_retries):
            is_last = attempt == self.max_retries - 1
            delay = self.retry_delay * (2 ** attempt)
            try:
                response = requests.post(
                    self.endpoint_url,
                    json=payload,
                    headers=self.headers,
                    timeout=self.timeout,
                )
                response.raise_for_status()
                return response.json()

            except requests.HTTPError as e:
                status = e.response.status_code if e.response is not None else None
                if status in RETRYABLE_STATUS_CODES and not is_last:
                    logger.warning(
                        f"Completion endpoint returned {status}, "
                        f"retrying in {delay:.1f}s (attempt {attempt + 1}/{self.max_retries})"
                    )
                    time.sleep(delay)
                    continue
                logger.error(f"Completion request failed with HTTP {status}")
                raise CompletionProviderError(
                    f"Could not generate answer: HTTP {status}"
                ) from e

            except (requests.Timeout, requests.ConnectionError) as e:
                if not is_last:
                    logger.warning(
                        f"Connection error: {e!s}, "
                        f"retrying in {delay:.1f}s (attempt {attempt + 1}/{self.max_retries})"
                    )
                    time.sleep(delay)
                    continue
                logger.error(f"Completion endpoint unreachable: {e!s}")
                raise CompletionProviderError(
                    f"Could not generate answer: {e!s}"
                ) from e

            except (requests.RequestException, ValueError) as e:
                logger.error(f"Completion request failed: {e!s}")
                raise CompletionProviderError(f"Could not generate answer: {e!s}") from e

        raise CompletionProviderError("Could not generate answer: no attempts were made")

    @staticmethod
    def _extract_content(result: dict[str, Any]) -> str:
        try:
            content = result["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise CompletionProviderError(
                "Could not generate answer: malformed completion response"
            ) from e
        if not isinstance(content, str) or not content.strip():
            raise CompletionProviderError("Could not generate answer: empty completion")
        return content.strip()

    def health_check(self, timeout: int = 30) -> tuple[bool, str]:
        """
        Perform a quick health check on the completion endpoint.

        Sends a minimal one-token prompt with a short timeout.

        Returns:
            Tuple of (is_healthy, message)
        """
        payload = self._build_payload("", "test", temperature=0.0, max_tokens=1)

        try:
            logger.info(f"Performing health check on endpoint: {self.endpoint_url}")
            response = requests.post(
                self.endpoint_url, json=payload, headers=self.headers, timeout=timeout
            )
            response.raise_for_status()
            result = response.json()
        except requests.Timeout:
            message = f"Endpoint timed out after {timeout}s"
        except requests.ConnectionError as e:
            message = f"Connection failed: {e!s}"
        except requests.HTTPError as e:
            message = f"HTTP {e.response.status_code}: {e.response.reason}"
        except ValueError:
            message = "Endpoint returned a non-JSON response"
        else:
            if result.get("choices"):
                elapsed = response.elapsed.total_seconds()
                logger.info(f"Endpoint health check passed ({elapsed:.2f}s)")
                return True, f"Endpoint healthy (responded in {elapsed:.2f}s)"
            message = "Endpoint returned invalid response structure"

        logger.warning(f"Endpoint health check failed: {message}")
        return False, message


def parse_json_reply(content: str) -> dict[str, Any]:
    """
    Parse a JSON-mode reply, tolerating a surrounding Markdown code fence.

    Raises:
        CompletionProviderError: If the reply is not a JSON object
    """
    text = content.strip()
    fenced = _FENCE_PATTERN.match(text)
    if fenced:
        text = fenced.group(1)
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        raise CompletionProviderError("Completion did not return valid JSON") from e
    if not isinstance(parsed, dict):
        raise CompletionProviderError("Completion JSON is not an object")
    return parsed
