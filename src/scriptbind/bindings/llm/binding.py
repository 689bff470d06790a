"""The ``llm`` script module: chat completion, image generation, message records.

    load("llm", "chat", "draw", "message")
    answer = chat(text="Describe this", image_file="cat.png", max_tokens=200)
    pics = draw("a lighthouse at dawn", n=2, response_format="b64_json")
    history = [message(role="system", text="Be terse"), message(text="hi")]
    chat(messages=history, retry=3, allow_error=True)
"""

from __future__ import annotations

from typing import Annotated, Any, ClassVar

from openai import OpenAI
from openai.types import Image, ImagesResponse
from openai.types.chat import ChatCompletion
from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt

from scriptbind.args import NullableStringOrBytes, NumberOrFloat, OneOrMany, StringOrBytes
from scriptbind.foundation.config import ConfigStore, Producer, get_settings, secret_value
from scriptbind.foundation.core import ConfigValues, ModuleBinding, ScriptModule, operation
from scriptbind.foundation.errors import ModelNotConfigured, ValidationError
from scriptbind.runtime.observability import get_logger
from scriptbind.runtime.pipeline import invoke, shape

from .clients import LLMClient, as_llm_client, make_openai_client
from .images import decode_png
from .messages import ROLE_USER, MessageParams, build_record, messages_to_chat_messages

MODULE_NAME = "llm"

log = get_logger("scriptbind.llm")

RESPONSE_FORMATS = {"json": "json_object", "text": "text"}


def _null() -> NullableStringOrBytes:
    return NullableStringOrBytes.null()


def _default(value: str):
    return lambda: NullableStringOrBytes(value)


Attempts = Annotated[StrictInt, Field(ge=1)]


class ChatParams(BaseModel):
    """Arguments of ``chat``; order is the positional order."""

    model_config = ConfigDict(extra="forbid")

    # message
    text: NullableStringOrBytes = Field(default_factory=_null)
    image: NullableStringOrBytes = Field(default_factory=_null)
    image_file: NullableStringOrBytes = Field(default_factory=_null)
    image_url: NullableStringOrBytes = Field(default_factory=_null)
    messages: OneOrMany[dict[str, Any]] = Field(default_factory=OneOrMany)
    # model request
    model: NullableStringOrBytes = Field(default_factory=_null)
    n: StrictInt = 1
    max_tokens: StrictInt = 64
    temperature: NumberOrFloat = Field(default_factory=lambda: NumberOrFloat(1.0))
    top_p: NumberOrFloat = Field(default_factory=lambda: NumberOrFloat(1.0))
    frequency_penalty: NumberOrFloat = Field(default_factory=lambda: NumberOrFloat(0.0))
    presence_penalty: NumberOrFloat = Field(default_factory=lambda: NumberOrFloat(0.0))
    stop: OneOrMany[StringOrBytes] = Field(default_factory=OneOrMany)
    response_format: NullableStringOrBytes = Field(default_factory=_default("text"))
    # call
    retry: Attempts = 1
    full_response: StrictBool = False
    allow_error: StrictBool = False


class DrawParams(BaseModel):
    """Arguments of ``draw``."""

    model_config = ConfigDict(extra="forbid")

    prompt: NullableStringOrBytes
    model: NullableStringOrBytes = Field(default_factory=_null)
    n: StrictInt = 1
    quality: NullableStringOrBytes = Field(default_factory=_default("standard"))
    size: NullableStringOrBytes = Field(default_factory=_default("1024x1024"))
    style: NullableStringOrBytes = Field(default_factory=_default("vivid"))
    response_format: NullableStringOrBytes = Field(default_factory=_default("url"))
    retry: Attempts = 1
    full_response: StrictBool = False
    allow_error: StrictBool = False


class LLMModule:
    """The ``llm`` script module.

    Example:
        >>> llm = LLMModule.with_config(api_key="sk-...", gpt_model="gpt-4o-mini")
        >>> llm.load_module()["chat"](text="Say hi", n=1)
        'Hi!'
    """

    name: ClassVar[str] = MODULE_NAME
    CONFIG_KEYS: ClassVar[tuple[str, ...]] = (
        "openai_provider", "openai_endpoint_url", "openai_api_key", "openai_gpt_model", "openai_dalle_model",
    )

    __slots__ = ("binding",)

    def __init__(self, store: ConfigStore[str] | None = None) -> None:
        self.binding: ModuleBinding[LLMClient] = ModuleBinding(
            MODULE_NAME, store if store is not None else ConfigStore(self.CONFIG_KEYS),
            secret_keys=("openai_api_key",),
        )

    @classmethod
    def with_config(
        cls,
        provider: str = "openai",
        endpoint_url: str = "",
        api_key: str = "",
        gpt_model: str = "",
        dalle_model: str = "",
    ) -> LLMModule:
        values = dict(zip(cls.CONFIG_KEYS, (provider, endpoint_url, api_key, gpt_model, dalle_model)))
        return cls(ConfigStore.from_values(values, cls.CONFIG_KEYS))

    @classmethod
    def with_getters(
        cls,
        provider: Producer[str],
        endpoint_url: Producer[str],
        api_key: Producer[str],
        gpt_model: Producer[str],
        dalle_model: Producer[str],
    ) -> LLMModule:
        producers = dict(zip(cls.CONFIG_KEYS, (provider, endpoint_url, api_key, gpt_model, dalle_model)))
        return cls(ConfigStore.from_producers(producers, cls.CONFIG_KEYS))

    @classmethod
    def from_settings(cls) -> LLMModule:
        """Read ``OPENAI_*`` variables through the cached settings."""
        return cls.with_getters(
            lambda: get_settings().openai.provider,
            lambda: get_settings().openai.endpoint_url,
            lambda: secret_value(get_settings().openai.api_key),
            lambda: get_settings().openai.gpt_model,
            lambda: get_settings().openai.dalle_model,
        )

    def load_module(self) -> ScriptModule:
        return self.binding.register_operations({
            "message": self.message,
            "chat": self.chat,
            "draw": self.draw,
        })

    def get_config(self) -> ConfigValues:
        return self.binding.get_config()

    def set_client(self, client: LLMClient | OpenAI | None) -> None:
        """Use ``client`` instead of one built from configuration."""
        self.binding.set_client(as_llm_client(client) if client is not None else None)

    def _client(self) -> LLMClient:
        timeout = get_settings().http.timeout
        return self.binding.resolve_client(
            lambda values: make_openai_client(values, timeout=timeout),
            required=("openai_api_key",),
            optional=("openai_provider", "openai_endpoint_url"),
        )

    def _model(self, given: NullableStringOrBytes, key: str, what: str) -> str:
        if not given.is_null_or_empty():
            return given.text
        if model := self.binding.config.get_or(key, ""):
            return model
        raise ModelNotConfigured(f"{what} model is not set")

    # ─────────────────────────────────────────────────────────────────
    # Operations
    # ─────────────────────────────────────────────────────────────────

    @operation(MessageParams)
    def message(self, params: MessageParams) -> dict[str, str | bytes]:
        """Message record for ``chat(messages=...)``."""
        return build_record(params)

    @operation(ChatParams)
    def chat(self, params: ChatParams) -> Any:
        model = self._model(params.model, "openai_gpt_model", "gpt")
        request = self.build_chat_request(params, model)
        client = self._client()

        resp: ChatCompletion | None = invoke(
            lambda: client.create_chat_completion(**request),
            name=f"{MODULE_NAME}.chat", retry=params.retry, allow_error=params.allow_error,
        )
        if resp is not None:
            log.debug("chat completed", model=model, choices=len(resp.choices),
                      usage=resp.usage.total_tokens if resp.usage else None)
        return shape(resp, resp.choices if resp else [], lambda c: c.message.content or "",
                     n=params.n, full_response=params.full_response)

    def build_chat_request(self, params: ChatParams, model: str) -> dict[str, Any]:
        """Chat completion request; the user message from the direct fields goes first.

        Raises:
            ValidationError: Bad message record, no messages, unknown response format
        """
        records = params.messages.as_list()
        if _has_content(params):
            records.insert(0, build_record(params, role=ROLE_USER))
        messages = messages_to_chat_messages(records)
        if not messages:
            raise ValidationError("at least one message is required")

        fmt = params.response_format.text
        if fmt not in RESPONSE_FORMATS:
            raise ValidationError(f"unsupported response format: {fmt}")

        request: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "max_tokens": params.max_tokens,
            "temperature": params.temperature.value,
            "top_p": params.top_p.value,
            "n": params.n,
            "presence_penalty": params.presence_penalty.value,
            "frequency_penalty": params.frequency_penalty.value,
            "response_format": {"type": RESPONSE_FORMATS[fmt]},
        }
        if not params.stop.is_empty:
            request["stop"] = [s.text for s in params.stop]
        return request

    @operation(DrawParams)
    def draw(self, params: DrawParams) -> Any:
        if params.prompt.is_null_or_empty():
            raise ValidationError("prompt is required")
        model = self._model(params.model, "openai_dalle_model", "dalle")
        fmt = params.response_format.text
        request = {
            "prompt": params.prompt.text,
            "model": model,
            "n": params.n,
            "quality": params.quality.text,
            "size": params.size.text,
            "style": params.style.text,
            "response_format": fmt,
        }
        client = self._client()

        resp: ImagesResponse | None = invoke(
            lambda: client.create_image(**request),
            name=f"{MODULE_NAME}.draw", retry=params.retry, allow_error=params.allow_error,
        )
        extract = _image_url if fmt.lower() == "url" else _image_png
        return shape(resp, (resp.data or []) if resp else [], extract,
                     n=params.n, full_response=params.full_response)


def _has_content(params: ChatParams) -> bool:
    return any(not getattr(params, k).is_null_or_empty() for k in ("text", "image", "image_file", "image_url"))


def _image_url(image: Image) -> str | None:
    return image.url


def _image_png(image: Image) -> bytes:
    return decode_png(image.b64_json or "")
