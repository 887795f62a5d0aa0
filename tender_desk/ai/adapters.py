"""One agno model per AI provider.

Every adapter runs a single-turn, tool-less ``Agent`` and returns the raw
response text. What differs per provider is how structured output is
requested: Gemini takes a response schema, the OpenAI-compatible providers
take JSON mode plus the schema as a system instruction, and Anthropic gets
the instruction alone.
"""

from __future__ import annotations

import base64
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from agno.agent import Agent
from agno.media import File, Image
from agno.models.anthropic import Claude
from agno.models.deepseek import DeepSeek
from agno.models.google import Gemini
from agno.models.openai import OpenAIChat

from ..config import AI_MAX_TOKENS
from ..exceptions import AIServiceError
from ..models.records import AIConfig, AIProvider
from .prompts import JSON_ONLY_INSTRUCTION
from .schema import SchemaSpec

logger = logging.getLogger(__name__)

GOOGLE_SEARCH_TOOL = "google_search"

Prompt = Union[str, dict]


@dataclass
class InlinePart:
    """A file sent along with the prompt, base64 without the data-URI header."""

    data: str
    mime_type: str

    @classmethod
    def from_file_data(cls, file_data: str, mime_type: str) -> InlinePart:
        return cls(data=file_data[file_data.find(",") + 1:], mime_type=mime_type)

    def to_part(self) -> dict:
        return {"inline_data": {"data": self.data, "mime_type": self.mime_type}}


@dataclass
class NormalizedPrompt:
    text: str
    inline: list[InlinePart] = field(default_factory=list)
    tools: list[str] = field(default_factory=list)


def normalize_prompt(prompt: Prompt) -> NormalizedPrompt:
    """Accept a plain string or ``{"parts": [...], "tools": [...]}``.

    Parts are ``{"text": ...}`` or ``{"inline_data": {"data", "mime_type"}}``;
    text parts are joined in order.
    """
    if isinstance(prompt, str):
        return NormalizedPrompt(text=prompt)
    texts: list[str] = []
    inline: list[InlinePart] = []
    for part in prompt.get("parts") or []:
        if part.get("text"):
            texts.append(part["text"])
        elif part.get("inline_data"):
            blob = part["inline_data"]
            inline.append(InlinePart(data=blob["data"], mime_type=blob["mime_type"]))
    return NormalizedPrompt(text="\n\n".join(texts), inline=inline, tools=list(prompt.get("tools") or []))


class AgnoAdapter(ABC):
    provider: AIProvider

    def __init__(self, config: AIConfig, max_tokens: int = AI_MAX_TOKENS):
        self.config = config
        self.max_tokens = max_tokens

    @abstractmethod
    def build_model(self, schema: Optional[SchemaSpec], prompt: NormalizedPrompt) -> Any:
        """Return the agno model configured for one request."""

    def system_message(self, schema: Optional[SchemaSpec]) -> Optional[str]:
        if schema is None:
            return None
        return JSON_ONLY_INSTRUCTION.format(schema=json.dumps(schema.to_json_schema()))

    async def generate(self, prompt: NormalizedPrompt, schema: Optional[SchemaSpec] = None) -> str:
        agent = Agent(
            name=f"tender-desk-{self.provider.name.lower()}",
            model=self.build_model(schema, prompt),
            system_message=self.system_message(schema),
            markdown=False,
            num_history_runs=0,
        )
        images = [Image(content=base64.b64decode(p.data)) for p in prompt.inline if p.mime_type.startswith("image/")]
        files = [
            File(content=base64.b64decode(p.data), mime_type=p.mime_type)
            for p in prompt.inline
            if not p.mime_type.startswith("image/")
        ]
        logger.debug("%s: %d chars, %d attachments", self.provider.value, len(prompt.text), len(prompt.inline))
        response = await agent.arun(prompt.text, images=images or None, files=files or None)
        content = response.content if response is not None else None
        if not content:
            raise AIServiceError(self.provider.value, f"{self.provider.value} returned an empty response.")
        return content if isinstance(content, str) else json.dumps(content)


class GeminiAdapter(AgnoAdapter):
    provider = AIProvider.GEMINI

    def system_message(self, schema: Optional[SchemaSpec]) -> Optional[str]:
        return None

    def build_model(self, schema: Optional[SchemaSpec], prompt: NormalizedPrompt) -> Gemini:
        generation_config: dict[str, Any] = {"max_output_tokens": self.max_tokens}
        if schema is not None:
            generation_config["response_mime_type"] = "application/json"
            generation_config["response_schema"] = schema.to_gemini_schema()
        return Gemini(
            id=self.config.model or "gemini-2.5-flash",
            api_key=self.config.api_key,
            generation_config=generation_config,
            search=GOOGLE_SEARCH_TOOL in prompt.tools,
        )


class OpenAIAdapter(AgnoAdapter):
    provider = AIProvider.OPENAI
    model_class = OpenAIChat

    def build_model(self, schema: Optional[SchemaSpec], prompt: NormalizedPrompt) -> OpenAIChat:
        request_params = {"response_format": {"type": "json_object"}} if schema is not None else None
        return self.model_class(
            id=self.config.model,
            api_key=self.config.api_key,
            max_tokens=self.max_tokens,
            request_params=request_params,
        )


class DeepSeekAdapter(OpenAIAdapter):
    provider = AIProvider.DEEPSEEK
    model_class = DeepSeek


class AnthropicAdapter(AgnoAdapter):
    provider = AIProvider.ANTHROPIC

    def build_model(self, schema: Optional[SchemaSpec], prompt: NormalizedPrompt) -> Claude:
        return Claude(id=self.config.model, api_key=self.config.api_key, max_tokens=self.max_tokens)


ADAPTERS: dict[AIProvider, type[AgnoAdapter]] = {
    AIProvider.GEMINI: GeminiAdapter,
    AIProvider.OPENAI: OpenAIAdapter,
    AIProvider.DEEPSEEK: DeepSeekAdapter,
    AIProvider.ANTHROPIC: AnthropicAdapter,
}


def create_adapter(config: AIConfig) -> AgnoAdapter:
    try:
        adapter_cls = ADAPTERS[AIProvider(config.provider)]
    except (KeyError, ValueError):
        raise AIServiceError(str(config.provider), f"Unsupported AI provider: {config.provider}") from None
    return adapter_cls(config)
