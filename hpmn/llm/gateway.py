"""Model gateway: one async entry point for chat, streaming and structured calls."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, Protocol, TypeVar

import anthropic
import openai
from pydantic import BaseModel

from hpmn.errors import (
    ConfigurationError,
    OutputParseError,
    RemoteCallError,
    UnsupportedProviderError,
)
from hpmn.llm.messages import ChatMessage, Role, last_human
from hpmn.llm.parsers import StructuredOutput, format_instructions, parse_structured
from hpmn.llm.templates import load_template

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

    from hpmn.config import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

SUPPORTED_PROVIDERS = ("anthropic", "openai")


@dataclass(frozen=True)
class ModelConfig:
    """Per-call model settings. Unset fields fall back to ``Settings``."""

    provider: str | None = None
    model: str | None = None
    temperature: float = 0.5
    max_tokens: int | None = None
    top_p: float | None = None
    timeout: float | None = None
    max_retries: int | None = None
    streaming: bool = False
    api_key: str | None = None


@dataclass
class InteractionContext:
    """Where a conversational reply goes while and after it is generated.

    Attributes:
        conversation_id: Conversation the finished turn is recorded under.
            When empty, the turn is not persisted.
        on_token: Async sink receiving each streamed text chunk.
    """

    conversation_id: str | None = None
    on_token: Callable[[str], Awaitable[None]] | None = None


@dataclass(frozen=True)
class ChatResponse:
    content: str


class TurnRecorder(Protocol):
    async def record(self, conversation_id: str, question: str, answer: str) -> None: ...


class ModelGateway:
    """Uniform access to the configured model providers.

    Two mutually exclusive modes:

    - Structured output (``structured`` given): render a prompt template
      with format instructions, send it as a single user turn and parse
      the reply into a pydantic model.
    - Conversational: send the message list; optionally stream each chunk
      to ``interaction.on_token`` and record the finished turn.
    """

    def __init__(self, settings: Settings, recorder: TurnRecorder | None = None) -> None:
        self._settings = settings
        self.recorder = recorder
        self._clients: dict[tuple[Any, ...], Any] = {}

    # -- Public API ----------------------------------------------------------

    async def invoke(
        self,
        messages: Sequence[ChatMessage],
        config: ModelConfig,
        interaction: InteractionContext | None = None,
        structured: StructuredOutput[T] | None = None,
    ) -> ChatResponse | T:
        if structured is not None:
            return await self.parse(structured, config)
        return await self.complete(messages, config, interaction)

    async def parse(self, structured: StructuredOutput[T], config: ModelConfig) -> T:
        """Structured-output call. Raises OutputParseError on a malformed reply."""
        cfg = self._resolve(config)
        template = load_template(structured.template)
        prompt = template.format(
            **structured.variables,
            FORMAT_INSTRUCTIONS=format_instructions(structured.model),
        )

        logger.info(
            "Structured call: template=%s, provider=%s, model=%s",
            structured.template,
            cfg.provider,
            cfg.model,
        )
        text = await self._send(cfg, [ChatMessage.human(prompt)])

        try:
            return parse_structured(text, structured.model)
        except OutputParseError:
            logger.error("Could not parse %s output: %.200s", structured.model.__name__, text)
            raise

    async def complete(
        self,
        messages: Sequence[ChatMessage],
        config: ModelConfig,
        interaction: InteractionContext | None = None,
    ) -> ChatResponse:
        """Conversational call, streamed when ``config.streaming`` is set."""
        cfg = self._resolve(config)

        if not cfg.streaming:
            logger.debug("Chat call: provider=%s, model=%s", cfg.provider, cfg.model)
            return ChatResponse(content=await self._send(cfg, messages))

        logger.info("Streaming chat call: provider=%s, model=%s", cfg.provider, cfg.model)
        sink = interaction.on_token if interaction else None
        text = await self._stream(cfg, messages, sink)
        await self._record(messages, text, interaction)
        return ChatResponse(content=text)

    # -- Configuration -------------------------------------------------------

    def _resolve(self, config: ModelConfig) -> ModelConfig:
        """Fill defaults from settings and validate before any network call."""
        provider = config.provider or self._settings.llm_provider
        if provider not in SUPPORTED_PROVIDERS:
            logger.error("Selected provider is not supported: %r", provider)
            msg = f"Unsupported provider: {provider!r}"
            raise UnsupportedProviderError(msg)

        api_key = config.api_key or self._settings.api_key_for(provider)
        if not api_key:
            msg = f"No API key configured for provider '{provider}'"
            raise ConfigurationError(msg)

        return replace(
            config,
            provider=provider,
            api_key=api_key,
            model=config.model or self._settings.model_for(provider),
            max_tokens=config.max_tokens or self._settings.max_tokens,
            timeout=(
                config.timeout if config.timeout is not None else self._settings.request_timeout
            ),
            max_retries=(
                config.max_retries if config.max_retries is not None else self._settings.max_retries
            ),
        )

    def _client(self, cfg: ModelConfig) -> Any:
        """Lazily build and cache one SDK client per provider/key/transport setting."""
        key = (cfg.provider, cfg.api_key, cfg.timeout, cfg.max_retries)
        client = self._clients.get(key)
        if client is None:
            if cfg.provider == "anthropic":
                client = anthropic.AsyncAnthropic(
                    api_key=cfg.api_key, timeout=cfg.timeout, max_retries=cfg.max_retries
                )
            else:
                client = openai.AsyncOpenAI(
                    api_key=cfg.api_key, timeout=cfg.timeout, max_retries=cfg.max_retries
                )
            self._clients[key] = client
        return client

    # -- Provider requests ---------------------------------------------------

    @staticmethod
    def _anthropic_kwargs(cfg: ModelConfig, messages: Sequence[ChatMessage]) -> dict[str, Any]:
        system = "\n\n".join(m.content for m in messages if m.role is Role.SYSTEM)
        turns = [
            {"role": "user" if m.role is Role.HUMAN else "assistant", "content": m.content}
            for m in messages
            if m.role is not Role.SYSTEM
        ]
        # The Messages API needs at least one turn; a system-only prompt becomes it.
        if not turns:
            turns = [{"role": "user", "content": system}]
            system = ""

        kwargs: dict[str, Any] = {
            "model": cfg.model,
            "max_tokens": cfg.max_tokens,
            "temperature": cfg.temperature,
            "messages": turns,
        }
        if system:
            kwargs["system"] = system
        if cfg.top_p is not None:
            kwargs["top_p"] = cfg.top_p
        return kwargs

    @staticmethod
    def _openai_kwargs(cfg: ModelConfig, messages: Sequence[ChatMessage]) -> dict[str, Any]:
        roles = {Role.SYSTEM: "system", Role.HUMAN: "user", Role.ASSISTANT: "assistant"}
        kwargs: dict[str, Any] = {
            "model": cfg.model,
            "max_tokens": cfg.max_tokens,
            "temperature": cfg.temperature,
            "messages": [{"role": roles[m.role], "content": m.content} for m in messages],
        }
        if cfg.top_p is not None:
            kwargs["top_p"] = cfg.top_p
        return kwargs

    async def _send(self, cfg: ModelConfig, messages: Sequence[ChatMessage]) -> str:
        client = self._client(cfg)
        try:
            if cfg.provider == "anthropic":
                response = await client.messages.create(**self._anthropic_kwargs(cfg, messages))
                return response.content[0].text
            response = await client.chat.completions.create(**self._openai_kwargs(cfg, messages))
            return response.choices[0].message.content or ""
        except (anthropic.APIError, openai.APIError) as exc:
            logger.error("Model call to %s failed: %s", cfg.provider, exc)
            msg = f"Model provider '{cfg.provider}' request failed"
            raise RemoteCallError(msg) from exc

    async def _stream(
        self,
        cfg: ModelConfig,
        messages: Sequence[ChatMessage],
        sink: Callable[[str], Awaitable[None]] | None,
    ) -> str:
        client = self._client(cfg)
        full_text = ""
        try:
            if cfg.provider == "anthropic":
                kwargs = self._anthropic_kwargs(cfg, messages)
                async with client.messages.stream(**kwargs) as stream:
                    async for text in stream.text_stream:
                        full_text += text
                        if sink:
                            await sink(text)
            else:
                stream = await client.chat.completions.create(
                    **self._openai_kwargs(cfg, messages), stream=True
                )
                async for chunk in stream:
                    if not chunk.choices:
                        continue
                    text = chunk.choices[0].delta.content
                    if text:
                        full_text += text
                        if sink:
                            await sink(text)
        except (anthropic.APIError, openai.APIError) as exc:
            logger.error("Streaming call to %s failed: %s", cfg.provider, exc)
            msg = f"Model provider '{cfg.provider}' stream failed"
            raise RemoteCallError(msg) from exc
        return full_text

    # -- Persistence ---------------------------------------------------------

    async def _record(
        self,
        messages: Sequence[ChatMessage],
        answer: str,
        interaction: InteractionContext | None,
    ) -> None:
        """Hand the finished turn to the recorder, when there is somewhere to put it."""
        conversation_id = interaction.conversation_id if interaction else None
        if not conversation_id:
            logger.debug("No conversation id on streamed reply; turn not persisted")
            return
        if self.recorder is None:
            logger.debug("No turn recorder attached; turn not persisted")
            return
        await self.recorder.record(conversation_id, last_human(messages), answer)
