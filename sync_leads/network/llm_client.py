"""
Client for an OpenAI-compatible chat-completions endpoint
with support for retries and rate limiting.
"""

import time
from typing import Any, Dict, List, Optional, cast
from urllib.parse import urljoin

import requests
import structlog

from sync_leads.config import LLM_TEMPERATURE, LLM_TIMEOUT_SECONDS, OPENAI_BASE_URL, OPENAI_MODEL
from sync_leads.errors import ConfigurationError
from sync_leads.metrics import classifier_latency, classifier_requests

logger = structlog.get_logger(__name__)

MAX_RETRIES = 2
RETRY_DELAY = 2.0
AUTH_FAILURE_CODES = (401, 403)


def should_retry(res: Optional[requests.Response], err: Optional[Exception]) -> bool:
    """
    Determine whether the request should be retried based on response or error.

    Args:
        res (Optional[requests.Response]): Response object if available.
        err (Optional[Exception]): Exception raised by the request, if any.

    Returns:
        bool: True if the request should be retried, False otherwise.
    """
    if res is not None and res.status_code == 429:
        return True
    if isinstance(err, (requests.Timeout, requests.ConnectionError)):
        return True
    if res is not None and 500 <= res.status_code < 600:
        return True
    return False


class ChatCompletionClient:
    """
    Minimal chat-completions client.

    The API key is resolved lazily through `api_key_getter` so a key changed in the
    admin panel is used on the next call.
    """

    def __init__(
        self,
        api_key_getter: Any,
        base_url: str = OPENAI_BASE_URL,
        model: str = OPENAI_MODEL,
        temperature: float = LLM_TEMPERATURE,
        timeout: float = LLM_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ):
        self._api_key_getter = api_key_getter
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self.model = model
        self.temperature = temperature
        self.timeout = timeout
        self.session = session or requests.Session()

    def complete(self, messages: List[Dict[str, str]]) -> str:
        """
        Send a chat-completions request and return the assistant's text.

        Args:
            messages: Chat messages ({"role": ..., "content": ...})

        Returns:
            str: Content of the first choice, stripped

        Raises:
            ConfigurationError: If no API key is configured, or the endpoint rejects it.
            requests.RequestException: If the request fails after all retries.
        """
        api_key = self._api_key_getter()
        if not api_key:
            raise ConfigurationError("OpenAI API key is not configured")

        url = urljoin(self.base_url, "chat/completions")
        headers = {"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"}
        payload = {"model": self.model, "messages": messages, "temperature": self.temperature}

        retries = 0
        while True:
            res: Optional[requests.Response] = None
            try:
                start_time = time.time()
                res = self.session.post(url, headers=headers, json=payload, timeout=self.timeout)
                classifier_latency.observe(time.time() - start_time)
                classifier_requests.labels(status_code=str(res.status_code)).inc()

                if res.status_code == 429:
                    retries += 1
                    if retries > MAX_RETRIES:
                        res.raise_for_status()
                    logger.warning("llm_rate_limited", sleep_seconds=RETRY_DELAY * retries)
                    time.sleep(RETRY_DELAY * retries)
                    continue

                if res.status_code in AUTH_FAILURE_CODES:
                    logger.error("llm_api_key_rejected", status_code=res.status_code)
                    raise ConfigurationError(
                        f"OpenAI API key was rejected (HTTP {res.status_code})"
                    )

                res.raise_for_status()
                body = cast(Dict[str, Any], res.json())
                choices = body.get("choices") or [{}]
                content = (choices[0].get("message") or {}).get("content") or ""
                return str(content).strip()

            except requests.RequestException as err:
                logger.warning("llm_request_error", error=str(err), attempt=retries + 1)
                retries += 1
                if retries > MAX_RETRIES or not should_retry(res, err):
                    raise
                time.sleep(RETRY_DELAY * retries)
