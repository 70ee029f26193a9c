from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Optional

from anthropic import Anthropic
from openai import OpenAI

from pagegen.config import settings
from pagegen.observability import get_openai_client_class, start_langfuse_generation


class LLMClientConfigError(Exception):
    pass


logger = logging.getLogger(__name__)
_DEFAULT_TIMEOUT = 60.0
_MAX_RETRIES = 2
_ANTHROPIC_DEFAULT_MAX_TOKENS = 4096


@dataclass
class LLMGenerationParams:
    model: str
    max_tokens: Optional[int] = None
    temperature: float = 0.7
    system_prompt: Optional[str] = None
    response_format: Optional[dict[str, Any]] = None


class LLMClient:
    """
    Thin wrapper for the copy-writing model calls.
    Routes to OpenAI or Anthropic based on the requested model name.
    """

    def __init__(self, default_model: Optional[str] = None) -> None:
        self.default_model = default_model or settings.COPY_MODEL
        self._anthropic_client: Optional[Anthropic] = None
        self._openai_client: Optional[OpenAI] = None

    def provider_for(self, model: str) -> str:
        if model.lower().startswith("claude"):
            return "anthropic"
        if self._is_openai_model(model):
            return "openai"
        raise LLMClientConfigError(f"Unsupported model for copy generation: {model}")

    def generate_text(self, prompt: str, params: Optional[LLMGenerationParams] = None) -> str:
        model = params.model if params and params.model else self.default_model
        provider = self.provider_for(model)
        model_parameters = {
            "temperature": params.temperature if params else None,
            "max_tokens": params.max_tokens if params else None,
        }
        with start_langfuse_generation(
            name=f"pagegen.{provider}.generate",
            model=model,
            input=prompt,
            model_parameters={k: v for k, v in model_parameters.items() if v is not None},
        ) as generation:
            if provider == "openai":
                text = self._generate_with_openai(prompt, model, params)
            else:
                text = self._generate_with_anthropic(prompt, model, params)
            if generation is not None:
                generation.update(output=text)
            return text

    def _is_openai_model(self, model: str) -> bool:
        lower = model.lower()
        prefixes = ("gpt-", "chatgpt-", "o", "omni-")
        return any(lower.startswith(prefix) for prefix in prefixes)

    def _get_openai_client(self) -> OpenAI:
        if self._openai_client is None:
            api_key = settings.OPENAI_API_KEY
            if not api_key:
                raise LLMClientConfigError("OPENAI_API_KEY not configured")
            client_class = get_openai_client_class()
            self._openai_client = client_class(
                api_key=api_key,
                timeout=_DEFAULT_TIMEOUT,
                max_retries=_MAX_RETRIES,
            )
        return self._openai_client

    def _get_anthropic_client(self) -> Anthropic:
        if self._anthropic_client is None:
            api_key = settings.ANTHROPIC_API_KEY
            if not api_key:
                raise LLMClientConfigError("ANTHROPIC_API_KEY not configured")
            self._anthropic_client = Anthropic(api_key=api_key, max_retries=_MAX_RETRIES)
        return self._anthropic_client

    def _generate_with_openai(self, prompt: str, model: str, params: Optional[LLMGenerationParams]) -> str:
        client = self._get_openai_client()

        messages: list[dict[str, str]] = []
        if params and params.system_prompt:
            messages.append({"role": "system", "content": params.system_prompt})
        messages.append({"role": "user", "content": prompt})

        completion_kwargs: dict[str, Any] = {"model": model, "messages": messages}
        if params is not None:
            completion_kwargs["temperature"] = params.temperature
            if params.max_tokens:
                completion_kwargs["max_tokens"] = params.max_tokens
            if params.response_format:
                completion_kwargs["response_format"] = params.response_format

        logger.info("llm.openai.request", extra={"model": model})
        try:
            completion = client.chat.completions.create(**completion_kwargs)
        except Exception:
            logger.exception("llm.openai.failed", extra={"model": model})
            raise

        text = None
        if completion and completion.choices:
            text = getattr(completion.choices[0].message, "content", None)
        if text:
            return text

        raise RuntimeError(f"OpenAI chat completion returned no content for model {model}")

    def _generate_with_anthropic(self, prompt: str, model: str, params: Optional[LLMGenerationParams]) -> str:
        client = self._get_anthropic_client()

        max_tokens = params.max_tokens if params and params.max_tokens else _ANTHROPIC_DEFAULT_MAX_TOKENS
        temperature = params.temperature if params else 0.7
        request_kwargs: dict[str, Any] = {
            "model": model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [{"role": "user", "content": self._anthropic_prompt(prompt, params)}],
            "timeout": _DEFAULT_TIMEOUT,
        }
        if params and params.system_prompt:
            request_kwargs["system"] = params.system_prompt

        logger.info("llm.anthropic.request", extra={"model": model})
        try:
            response = client.messages.create(**request_kwargs)
        except Exception:
            logger.exception("llm.anthropic.failed", extra={"model": model})
            raise

        text_parts = [content.text for content in response.content if getattr(content, "text", None)]
        text = "".join(text_parts) if text_parts else None
        if text:
            return strip_code_fence(text)

        raise RuntimeError(f"Anthropic returned no content for model {model}")

    @staticmethod
    def _anthropic_prompt(prompt: str, params: Optional[LLMGenerationParams]) -> str:
        # Messages API has no response_format; the schema travels in the prompt instead.
        if not params or not params.response_format:
            return prompt
        json_schema = params.response_format.get("json_schema")
        schema = json_schema.get("schema") if isinstance(json_schema, dict) else None
        if not isinstance(schema, dict):
            return prompt
        return (
            f"{prompt}\n\nRespond with a single JSON object and nothing else. "
            f"It must validate against this JSON schema:\n{json.dumps(schema)}"
        )


def strip_code_fence(text: str) -> str:
    stripped = text.strip()
    if not stripped.startswith("```"):
        return stripped
    lines = stripped.splitlines()
    if lines and lines[0].startswith("```"):
        lines = lines[1:]
    if lines and lines[-1].strip().startswith("```"):
        lines = lines[:-1]
    return "\n".join(lines).strip()
