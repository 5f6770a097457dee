"""LLM client abstraction for the AI-backed parser."""

import json
import re
from dataclasses import dataclass
from typing import Any, Optional

from ..config import AI_PROVIDERS, Settings


class AIServiceError(Exception):
    """The provider call failed (network, auth, timeout, bad status)."""


class AIResponseFormatError(ValueError):
    """The provider answered but the payload could not be decoded as JSON."""


@dataclass(frozen=True)
class LLMResponse:
    """Text returned by the provider and the token usage it reported."""
    text: str
    total_tokens: Optional[int] = None
    model: Optional[str] = None


class LLMClient:
    """
    Thin wrapper over an OpenAI-compatible chat completions endpoint.

    SiliconFlow and OpenAI are both reached through the `openai` client,
    the former with its own base URL.
    """

    def __init__(self, settings: Settings, client: Any = None):
        """
        Initialize the client.

        Args:
            settings: Provider, model, key and timeout to use.
            client: Pre-built client object exposing `chat.completions.create`.
                Built from settings when omitted.
        """
        self.settings = settings
        self.provider = settings.ai_provider
        self.model = settings.ai_model
        self._client = client
        if self._client is None:
            self._init_client()

    def _init_client(self):
        """Initialize the OpenAI-compatible client for the configured provider."""
        info = AI_PROVIDERS.get(self.provider)
        if info is None or self.provider == "local":
            raise ValueError(f"Provider {self.provider} has no remote endpoint")
        if not self.settings.api_key:
            raise ValueError(f"{info.api_key_env} not found in environment")

        from openai import OpenAI

        kwargs = {"api_key": self.settings.api_key, "timeout": self.settings.ai_timeout}
        if info.base_url:
            kwargs["base_url"] = info.base_url
        self._client = OpenAI(**kwargs)

    def complete(
        self,
        messages: list[dict],
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        response_format: Optional[dict] = None,
    ) -> LLMResponse:
        """
        Call the model with the given messages.

        Args:
            messages: List of message dicts with 'role' and 'content'.
            max_tokens: Maximum tokens in response.
            temperature: Sampling temperature; settings value when omitted.
            response_format: Optional response format spec (for JSON mode).

        Returns:
            LLMResponse with the text and reported usage.

        Raises:
            AIServiceError: The request failed.
        """
        kwargs = {
            "model": self.model,
            "messages": messages,
            "max_tokens": max_tokens or self.settings.ai_max_tokens,
            "temperature": self.settings.ai_temperature if temperature is None else temperature,
        }
        if response_format:
            kwargs["response_format"] = response_format

        try:
            response = self._client.chat.completions.create(**kwargs)
        except Exception as e:
            raise AIServiceError(f"AI API request failed: {e}") from e

        if not response.choices:
            raise AIServiceError("AI API returned no choices")

        usage = getattr(response, "usage", None)
        return LLMResponse(
            text=response.choices[0].message.content or "",
            total_tokens=getattr(usage, "total_tokens", None),
            model=getattr(response, "model", self.model),
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(provider={self.provider}, model={self.model})"


def _sanitize_json_string(s: str) -> str:
    """Escape raw control characters that appear inside JSON strings."""
    result = []
    in_string = False
    for i, char in enumerate(s):
        if char == '"' and (i == 0 or s[i - 1] != "\\"):
            in_string = not in_string
            result.append(char)
        elif in_string and ord(char) < 32:
            if char == "\n":
                result.append("\\n")
            elif char == "\r":
                result.append("\\r")
            elif char == "\t":
                result.append("\\t")
            else:
                result.append(f"\\u{ord(char):04x}")
        else:
            result.append(char)
    return "".join(result)


def _fix_unterminated_strings(s: str) -> str:
    """Close strings left open at the end of a line."""
    fixed_lines = []
    for line in s.split("\n"):
        quote_count = line.count('"') - line.count('\\"')
        if quote_count % 2 == 1:
            line = line.rstrip(",") + '",'
        fixed_lines.append(line)
    return "\n".join(fixed_lines)


def decode_json_payload(response: str) -> Any:
    """
    Decode a JSON value from an LLM response.

    Handles markdown code fences, raw control characters inside strings,
    prose around the JSON and strings cut off at line ends.

    Args:
        response: Raw LLM response text.

    Returns:
        The decoded value (list or dict).

    Raises:
        AIResponseFormatError: No strategy produced valid JSON.
    """
    text = response.strip()
    if text.startswith("```"):
        text = re.sub(r"^```\w*\n?", "", text)
        text = re.sub(r"\n?```$", "", text)
        text = text.strip()

    parse_error = None

    # Strategy 1: Direct parse
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        parse_error = e

    # Strategy 2: Allow control characters
    try:
        return json.loads(text, strict=False)
    except json.JSONDecodeError:
        pass

    # Strategy 3: Escape control characters and retry
    try:
        return json.loads(_sanitize_json_string(text))
    except json.JSONDecodeError:
        pass

    # Strategy 4: Extract the outermost array, then object, from surrounding prose
    for pattern in (r"\[[\s\S]*\]", r"\{[\s\S]*\}"):
        match = re.search(pattern, text)
        if not match:
            continue
        extracted = match.group()
        try:
            return json.loads(extracted, strict=False)
        except json.JSONDecodeError:
            try:
                return json.loads(_sanitize_json_string(extracted))
            except json.JSONDecodeError:
                pass

    # Strategy 5: Close unterminated strings
    try:
        return json.loads(_fix_unterminated_strings(text), strict=False)
    except json.JSONDecodeError:
        pass

    raise AIResponseFormatError(f"Could not parse JSON from response: {parse_error}")
