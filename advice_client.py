import logging
from typing import Optional

import requests

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a professional fitness trainer specializing in progressive "
    "overload programming."
)


class AdviceClient:
    """Chat-completion client that turns workout history into free text advice.

    Every failure is logged and reported as ``None`` so callers can degrade to
    an empty result.
    """

    def __init__(
        self,
        api_url: str,
        api_key: str,
        model: str = "mistral-medium",
        timeout: float = 30.0,
    ) -> None:
        self.api_url = api_url
        self.api_key = api_key
        self.model = model
        self.timeout = timeout

    def complete(self, prompt: str) -> Optional[str]:
        """Return the first choice's message content for ``prompt``."""
        if not self.api_key:
            logger.warning("advice API key not configured")
            return None
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        try:
            resp = requests.post(
                self.api_url, json=payload, headers=headers, timeout=self.timeout
            )
            resp.raise_for_status()
            body = resp.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning("advice request failed: %s", e)
            return None
        return self._extract_content(body)

    @staticmethod
    def _extract_content(body: object) -> Optional[str]:
        if not isinstance(body, dict):
            return None
        choices = body.get("choices")
        if not isinstance(choices, list) or not choices:
            return None
        first = choices[0]
        message = first.get("message") if isinstance(first, dict) else None
        if not isinstance(message, dict):
            return None
        content = message.get("content")
        return content if isinstance(content, str) else None
