"""Completion gateways: one request/response exchange with an LLM service.

The pipeline depends only on the `CompletionGateway` protocol. Two
transports implement it: LangChain chat models (Anthropic, Google) and an
OpenAI-compatible local server reached over httpx.
"""

import time
from typing import Protocol, Sequence

import httpx
from langchain_anthropic import ChatAnthropic
from langchain_google_genai import ChatGoogleGenerativeAI

from sketchstudio.errors import Cancelled, GatewayError
from sketchstudio.models import Completion, Message
from sketchstudio.utils.retry import invoke_with_retry

DEFAULT_MODEL = "claude-sonnet-4-5"
DEFAULT_LOCAL_URL = "http://localhost:1234/v1"
TRUNCATION_REASONS = {"max_tokens", "length", "MAX_TOKENS"}


class CompletionGateway(Protocol):
    def complete(
        self,
        system: str,
        messages: Sequence[Message],
        max_tokens: int,
        cancel=None,
    ) -> Completion:
        ...


def _call(fn, payload, cancel):
    if cancel is not None:
        return cancel.run(fn, payload)
    return fn(payload)


def _text_of(content) -> str:
    """Flatten LangChain message content (str or list of content blocks)."""
    if isinstance(content, str):
        return content
    parts = []
    for block in content or []:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)


def _to_completion(response, model: str, duration: float) -> Completion:
    metadata = getattr(response, "response_metadata", None)
    metadata = metadata if isinstance(metadata, dict) else {}
    usage = getattr(response, "usage_metadata", None)
    usage = usage if isinstance(usage, dict) else {}

    stop_reason = metadata.get("stop_reason") or metadata.get("finish_reason") or ""
    stop_reason = getattr(stop_reason, "name", stop_reason)  # Google returns an enum
    return Completion(
        content=_text_of(response.content),
        input_tokens=int(usage.get("input_tokens", 0) or 0),
        output_tokens=int(usage.get("output_tokens", 0) or 0),
        truncated=str(stop_reason) in TRUNCATION_REASONS,
        stop_reason=str(stop_reason),
        model=str(metadata.get("model") or metadata.get("model_name") or model),
        duration=duration,
    )


class ChatModelGateway:
    """Gateway over a LangChain chat model.

    A fresh model client is built per request so the output budget can vary
    between calls. LangChain's own retries are disabled; retries happen in
    `invoke_with_retry` where they can be cancelled.
    """

    def __init__(
        self,
        provider: str = "anthropic",
        model: str = DEFAULT_MODEL,
        *,
        api_key: str | None = None,
        timeout: float | None = 600,
        max_retries: int = 2,
        backoff_seconds: float = 1.0,
        log=None,
    ):
        if provider not in ("anthropic", "google"):
            raise ValueError(f"Unsupported chat model provider '{provider}'.")
        self.provider = provider
        self.model = model
        self.api_key = api_key
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds
        self.log = log

    def _make_llm(self, max_tokens: int):
        if self.provider == "google":
            kwargs = {"model": self.model, "max_output_tokens": max_tokens, "max_retries": 0, "timeout": self.timeout}
            if self.api_key:
                kwargs["google_api_key"] = self.api_key
            return ChatGoogleGenerativeAI(**kwargs)

        kwargs = {"model": self.model, "max_tokens": max_tokens, "max_retries": 0, "timeout": self.timeout}
        if self.api_key:
            kwargs["api_key"] = self.api_key
        return ChatAnthropic(**kwargs)

    def complete(self, system, messages, max_tokens, cancel=None) -> Completion:
        llm = self._make_llm(max_tokens)
        payload = [{"role": "system", "content": system}] + [m.as_dict() for m in messages]

        start = time.monotonic()
        try:
            response = invoke_with_retry(
                lambda: _call(llm.invoke, payload, cancel),
                max_retries=self.max_retries,
                backoff_seconds=self.backoff_seconds,
                cancel=cancel,
                log=self.log,
            )
        except Cancelled:
            raise
        except Exception as exc:
            raise GatewayError(f"{self.provider} completion failed: {exc}") from exc

        return _to_completion(response, self.model, time.monotonic() - start)


class LocalGateway:
    """Gateway for an OpenAI-compatible server (e.g. LM Studio) on localhost."""

    def __init__(
        self,
        base_url: str = DEFAULT_LOCAL_URL,
        model: str = "",
        *,
        timeout: float = 300,
        max_retries: int = 2,
        backoff_seconds: float = 1.0,
        client: httpx.Client | None = None,
        log=None,
    ):
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds
        self.client = client or httpx.Client()
        self.log = log

    def _post(self, payload: dict) -> dict:
        response = self.client.post(
            f"{self.base_url}/chat/completions", json=payload, timeout=self.timeout
        )
        response.raise_for_status()
        data = response.json()
        if not data.get("choices"):
            raise RuntimeError("local model returned no choices")
        return data

    def complete(self, system, messages, max_tokens, cancel=None) -> Completion:
        payload = {
            "messages": [{"role": "system", "content": system}] + [m.as_dict() for m in messages],
            "max_tokens": max_tokens,
        }
        if self.model:
            payload["model"] = self.model

        start = time.monotonic()
        try:
            data = invoke_with_retry(
                lambda: _call(self._post, payload, cancel),
                max_retries=self.max_retries,
                backoff_seconds=self.backoff_seconds,
                cancel=cancel,
                log=self.log,
            )
        except Cancelled:
            raise
        except Exception as exc:
            raise GatewayError(f"local completion failed: {exc}") from exc

        choice = data["choices"][0]
        usage = data.get("usage") or {}
        finish_reason = choice.get("finish_reason") or ""
        return Completion(
            content=(choice.get("message") or {}).get("content") or "",
            input_tokens=int(usage.get("prompt_tokens", 0) or 0),
            output_tokens=int(usage.get("completion_tokens", 0) or 0),
            truncated=finish_reason in TRUNCATION_REASONS,
            stop_reason=finish_reason,
            model=data.get("model") or self.model,
            duration=time.monotonic() - start,
        )


def build_gateway(config: dict, api_key: str | None = None, log=None) -> CompletionGateway:
    """Select and configure the gateway named by `config['provider']`."""
    provider = config.get("provider", "anthropic")
    common = {
        "max_retries": config.get("llm_max_retries", 2),
        "backoff_seconds": config.get("llm_backoff_seconds", 1.0),
        "log": log,
    }
    if provider == "local":
        return LocalGateway(
            config.get("local_base_url", DEFAULT_LOCAL_URL),
            config.get("local_model", ""),
            timeout=config.get("llm_timeout_seconds", 300),
            **common,
        )
    return ChatModelGateway(
        provider,
        config.get("model", DEFAULT_MODEL),
        api_key=api_key,
        timeout=config.get("llm_timeout_seconds", 600),
        **common,
    )
