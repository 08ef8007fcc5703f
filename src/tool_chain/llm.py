# llm.py
# Chat-completion collaborator shared by the planner, the synthesizer and
# the model-backed tools. One request in, one stripped text reply out.
# Retries are deliberately absent at this layer.

import json
import re
from typing import Any

from openai import OpenAI, OpenAIError

from tool_chain.config import Settings
from tool_chain.errors import LanguageModelError

_FENCED_JSON = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")


class LanguageModel:
    """
    Thin wrapper over an OpenAI-compatible chat endpoint.

    Example:
        llm = LanguageModel.from_settings(Settings.from_env())
        text = llm.complete([{"role": "user", "content": "Hi"}])
    """

    def __init__(self, model: str, client: OpenAI) -> None:
        self._model = model
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "LanguageModel":
        client = OpenAI(base_url=settings.base_url, api_key=settings.api_key)
        return cls(settings.model, client)

    @property
    def model(self) -> str:
        return self._model

    def complete(self, messages: list[dict]) -> str:
        try:
            response = self._client.chat.completions.create(
                model=self._model,
                messages=messages,
            )
        except OpenAIError as exc:
            raise LanguageModelError(f"Model call failed: {exc}") from exc

        if not response.choices:
            raise LanguageModelError("Model returned no choices.")
        content = response.choices[0].message.content
        if content is None:
            raise LanguageModelError("Model returned an empty message.")
        return content.strip()


def parse_json_reply(text: str) -> Any:
    """
    Parse a model reply that should be JSON.

    Tries the whole text first, then the first fenced code block.
    Raises ValueError when neither parses.
    """
    try:
        return json.loads(text, strict=False)
    except json.JSONDecodeError:
        pass

    match = _FENCED_JSON.search(text)
    if match:
        try:
            return json.loads(match.group(1), strict=False)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Fenced block is not valid JSON: {exc}") from exc

    raise ValueError("Reply contains no JSON object.")
