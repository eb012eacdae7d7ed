from __future__ import annotations

import http.client
import json
import logging
from dataclasses import dataclass
from urllib.error import HTTPError
from urllib.request import Request, urlopen

from config import get_settings


logger = logging.getLogger(__name__)

ADVICE_PROMPT = (
    "You are a knowledgeable and friendly financial advisor.\n"
    "Provide clear, concise, and actionable financial advice based on this context:\n"
    "{context}\n\n"
    "Keep the response professional but approachable, and limit it to 3-5 key points."
)


class AIServiceError(RuntimeError):
    pass


@dataclass(frozen=True)
class ChatReply:
    success: bool
    message: str


class ChatService:
    def __init__(self) -> None:
        self.settings = get_settings()

    def chat(self, messages: list[dict[str, str]]) -> ChatReply:
        """Relay ``messages`` to the completion API and return its reply.

        Failures are reported in the reply rather than raised, so the HTTP
        layer can always answer 200 with ``success`` set accordingly.
        """
        if not messages:
            return ChatReply(False, "Messages array is required and cannot be empty")
        if not self.settings.ai_api_key:
            logger.error("ai_chat: FINANCE_AI_API_KEY is not set")
            return ChatReply(False, "AI service is not properly configured")

        payload = {
            "model": self.settings.ai_model,
            "messages": messages,
            "temperature": self.settings.ai_temperature,
            "max_tokens": self.settings.ai_max_tokens,
        }
        logger.info(
            f"ai_chat: model={self.settings.ai_model} messages={len(messages)}"
        )
        try:
            response = _post_completion(
                self.settings.ai_api_url,
                payload,
                api_key=self.settings.ai_api_key,
                timeout=self.settings.ai_timeout_secs,
            )
            content = _extract_content(response)
        except AIServiceError as exc:
            logger.warning(f"ai_chat_failed: error={exc}")
            return ChatReply(False, str(exc))
        return ChatReply(True, content)

    def advice(self, context: str) -> ChatReply:
        prompt = ADVICE_PROMPT.format(context=context.strip())
        return self.chat([{"role": "user", "content": prompt}])


def _post_completion(url: str, payload: dict, *, api_key: str, timeout: float) -> dict:
    body = json.dumps(payload).encode("utf-8")
    req = Request(
        url,
        data=body,
        method="POST",
        headers={
            "Accept": "application/json",
            "Content-Type": "application/json",
            "Authorization": f"Bearer {api_key}",
        },
    )
    try:
        with urlopen(req, timeout=timeout) as resp:
            return json.loads(resp.read().decode("utf-8"))
    except HTTPError as exc:
        raise AIServiceError(
            f"AI provider returned HTTP {exc.code}"
        ) from exc
    except (OSError, http.client.HTTPException, ValueError) as exc:
        raise AIServiceError("Failed to get response from AI service") from exc


def _extract_content(response: dict) -> str:
    try:
        content = response["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as exc:
        raise AIServiceError("Unexpected AI provider response") from exc
    if not isinstance(content, str) or not content.strip():
        raise AIServiceError("No content in AI response")
    return content.strip()
