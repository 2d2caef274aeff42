from __future__ import annotations
import json
import logging
import re
from typing import Any, Dict, List, Optional, Union

from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types
from openai import OpenAI, OpenAIError

from .config import AgentConfig
from .errors import CompletionError, MalformedResponseError

logger = logging.getLogger(__name__)

Messages = List[Dict[str, str]]

_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


class CompletionClient:
    """
    The one capability the engine needs from a language model: send a system
    prompt plus an optional user turn (string or chat messages) and get text back.
    With ``json=True`` the reply is expected to be a single JSON object.
    """

    def generate(self, system_prompt: str, user: Union[str, Messages, None] = None, *, json: bool = False) -> str:  # pragma: no cover - interface
        raise NotImplementedError


class OpenAICompletionClient(CompletionClient):
    """
    OpenAI chat-completions client. Also serves DeepSeek and other
    OpenAI-compatible endpoints through ``base_url``.
    """

    def __init__(self, api_key: str, model: str, base_url: Optional[str] = None, *,
                 temperature: float = 0.2, timeout: float = 60.0, max_retries: int = 2):
        self.model = model
        self.temperature = temperature
        self.client = OpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=max_retries,
        )

    def generate(self, system_prompt: str, user: Union[str, Messages, None] = None, *, json: bool = False) -> str:
        messages: Messages = [{"role": "system", "content": system_prompt}]
        if isinstance(user, str):
            messages.append({"role": "user", "content": user})
        elif user:
            messages.extend(user)

        kwargs: Dict[str, Any] = {}
        if json:
            kwargs["response_format"] = {"type": "json_object"}

        logger.debug("completion request model=%s json=%s messages=%d", self.model, json, len(messages))
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=self.temperature,
                **kwargs,
            )
        except OpenAIError as e:
            logger.error("Completion API error: %s", e)
            raise CompletionError(str(e)) from e

        content = response.choices[0].message.content
        if content is None:
            raise CompletionError("Completion API returned an empty message")
        return content.strip()


class GeminiCompletionClient(CompletionClient):
    """Google Gemini through the google-genai SDK."""

    def __init__(self, api_key: str, model: str, *, temperature: float = 0.2, timeout: float = 60.0):
        self.model = model
        self.temperature = temperature
        self.client = genai.Client(
            api_key=api_key,
            http_options=genai_types.HttpOptions(timeout=int(timeout * 1000)),
        )

    def generate(self, system_prompt: str, user: Union[str, Messages, None] = None, *, json: bool = False) -> str:
        if isinstance(user, str):
            contents: Any = user
        elif user:
            contents = [
                genai_types.Content(
                    role="model" if m["role"] == "assistant" else "user",
                    parts=[genai_types.Part(text=m["content"])],
                )
                for m in user
            ]
        else:
            # Gemini needs at least one user turn
            contents = "Respond according to the instructions."

        config = genai_types.GenerateContentConfig(
            temperature=self.temperature,
            system_instruction=system_prompt,
            response_mime_type="application/json" if json else None,
        )
        logger.debug("gemini request model=%s json=%s", self.model, json)
        try:
            response = self.client.models.generate_content(model=self.model, contents=contents, config=config)
        except genai_errors.APIError as e:
            logger.error("Gemini API error: %s", e)
            raise CompletionError(str(e)) from e

        if not response.text:
            raise CompletionError("Gemini returned an empty message")
        return response.text.strip()


def build_client(cfg: AgentConfig) -> CompletionClient:
    """Pick the completion client for ``cfg.provider``. Called once at startup."""
    if cfg.provider in ("openai", "deepseek"):
        return OpenAICompletionClient(
            api_key=cfg.require_api_key(),
            model=cfg.resolved_model,
            base_url=cfg.resolved_base_url,
            temperature=cfg.temperature,
            timeout=cfg.request_timeout,
            max_retries=cfg.max_retries,
        )
    if cfg.provider == "gemini":
        return GeminiCompletionClient(
            api_key=cfg.require_api_key(),
            model=cfg.resolved_model,
            temperature=cfg.temperature,
            timeout=cfg.request_timeout,
        )
    raise CompletionError(f"Unsupported provider: {cfg.provider}")


def parse_json_response(text: str) -> Any:
    """Decode a model reply as JSON, tolerating a surrounding markdown fence."""
    if text is None:
        raise MalformedResponseError("Empty model response", raw=text)
    cleaned = text.strip()
    m = _FENCE_RE.match(cleaned)
    if m:
        cleaned = m.group(1)
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise MalformedResponseError(f"Model response is not valid JSON: {e}", raw=text) from e
