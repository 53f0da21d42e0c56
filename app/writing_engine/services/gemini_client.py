"""Client wrapper around the Google Gemini Generative Language API."""
from __future__ import annotations

import os
from typing import Any, Dict, Optional

import requests
from flask import current_app

from .errors import ProviderUnavailable
from .prompt_builder import AnalysisPrompt

PLACEHOLDER_API_KEYS = {'your_gemini_api_key_here'}


class GeminiClient:
    """Scoring provider backed by Gemini. One HTTP request per ``generate`` call."""

    DEFAULT_MODEL = "gemini-2.5-flash"
    DEFAULT_TIMEOUT = 40

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None):
        self.api_key = (api_key if api_key is not None else os.getenv("GEMINI_API_KEY", "")).strip()
        self.model = model or os.getenv("GEMINI_MODEL", self.DEFAULT_MODEL)
        self.api_root = os.getenv(
            "GEMINI_API_URL",
            f"https://generativelanguage.googleapis.com/v1beta/models/{self.model}:generateContent",
        )
        try:
            self.timeout = int(os.getenv("GEMINI_TIMEOUT_SECONDS", str(self.DEFAULT_TIMEOUT)))
        except ValueError:
            self.timeout = self.DEFAULT_TIMEOUT

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key) and self.api_key not in PLACEHOLDER_API_KEYS

    def generate(self, request: AnalysisPrompt) -> str:
        """Send a rendered prompt and return the raw text of the first usable candidate.

        Raises:
            ProviderUnavailable: on missing configuration, transport errors, HTTP
                errors, timeouts or an empty/blocked response.
        """
        if not self.is_configured:
            raise ProviderUnavailable("Gemini API key missing or placeholder")

        payload: Dict[str, Any] = {
            "contents": [{"parts": [{"text": request.prompt}]}],
            "generationConfig": {
                "temperature": request.temperature,
                "responseMimeType": request.response_mime,
            },
        }
        if request.system_instruction:
            payload["systemInstruction"] = {"parts": [{"text": request.system_instruction}]}

        try:
            response = requests.post(
                f"{self.api_root}?key={self.api_key}",
                json=payload,
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.HTTPError as exc:
            status_code = exc.response.status_code if exc.response is not None else None
            raise ProviderUnavailable(f"Gemini HTTP error {status_code}") from exc
        except (requests.exceptions.Timeout, requests.exceptions.ConnectionError) as exc:
            raise ProviderUnavailable(f"Gemini timeout/connection error: {exc}") from exc
        except requests.exceptions.RequestException as exc:
            raise ProviderUnavailable(f"Gemini request failed: {exc}") from exc
        except ValueError as exc:
            raise ProviderUnavailable("Gemini response body was not JSON") from exc

        text, finish_reason = self._response_text(data if isinstance(data, dict) else {})
        if not text:
            raise ProviderUnavailable(f"Gemini returned no text (finish reason: {finish_reason})")
        return text

    @staticmethod
    def _response_text(data: Dict[str, Any]) -> tuple[str, Optional[str]]:
        """Text of the first candidate that has any, with that candidate's finish reason.

        A response without candidates yields "" and the block reason, if Gemini gave one.
        """
        candidates = [c for c in data.get("candidates") or [] if isinstance(c, dict)]
        if not candidates:
            feedback = data.get("promptFeedback") or {}
            block_reason = feedback.get("blockReason")
            if block_reason:
                current_app.logger.error("Gemini blocked the analysis prompt: %s", block_reason)
            else:
                current_app.logger.warning("Gemini response has no candidates: %s", str(data)[:500])
            return "", block_reason

        for candidate in candidates:
            text = "".join(_part_text(part) for part in (candidate.get("content") or {}).get("parts") or [])
            if text:
                return text, candidate.get("finishReason")
        return "", candidates[0].get("finishReason")


def _part_text(part: Any) -> str:
    # JSON mode normally answers in "text"; some models put the object in functionCall.argsJson.
    if not isinstance(part, dict):
        return ""
    text = part.get("text")
    if not (isinstance(text, str) and text.strip()):
        call = part.get("functionCall")
        text = call.get("argsJson") if isinstance(call, dict) else None
    return text if isinstance(text, str) and text.strip() else ""


def get_gemini_client() -> GeminiClient:
    """Factory helper to allow lazy imports without circular references."""
    return GeminiClient()
