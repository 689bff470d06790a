"""Tests for the llm binding.

Validates:
- chat/draw request building and result shaping (n, full_response)
- message records and their conversion to chat messages
- fail-fast on BAD_REQUEST, bounded retry on transient errors, allow_error
- model and provider configuration errors
- image helpers (data URIs, PNG decoding)
"""

from __future__ import annotations

import base64
import io
from pathlib import Path
from typing import Any

import httpx
import openai
import pytest
from openai import AzureOpenAI, OpenAI
from openai.types import ImagesResponse
from openai.types.chat import ChatCompletion
from PIL import Image

from scriptbind.bindings.llm import (
    LLMModule,
    OpenAIClient,
    decode_png,
    detect_mime,
    image_data_uri,
    image_file_uri,
    make_openai_client,
    messages_to_chat_messages,
)
from scriptbind.foundation.core import ScriptModule
from scriptbind.foundation.errors import (
    ArgumentError,
    BindingException,
    ErrorCode,
    FileError,
    MarshalError,
    MissingConfig,
    ModelNotConfigured,
    TransportError,
    UnsupportedProvider,
    ValidationError,
)


def png_bytes(fmt: str = "PNG") -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (2, 2), (255, 0, 0)).save(buf, format=fmt)
    return buf.getvalue()


def completion(*contents: str | None) -> ChatCompletion:
    return ChatCompletion.model_validate({
        "id": "chatcmpl-1",
        "object": "chat.completion",
        "created": 1700000000,
        "model": "gpt-4o-mini",
        "choices": [
            {"index": i, "finish_reason": "stop", "message": {"role": "assistant", "content": c}}
            for i, c in enumerate(contents)
        ],
    })


def images(**fields: Any) -> ImagesResponse:
    return ImagesResponse.model_validate({"created": 1700000000, "data": [fields]})


def api_error(cls: type[openai.APIStatusError], status: int, message: str) -> openai.APIStatusError:
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    return cls(message, response=httpx.Response(status, request=request), body=None)


class FakeLLM:
    """LLMClient returning (or raising) queued outcomes; the last one repeats."""

    def __init__(self, *outcomes: Any) -> None:
        self.outcomes = list(outcomes)
        self.chat_requests: list[dict[str, Any]] = []
        self.image_requests: list[dict[str, Any]] = []

    def _next(self) -> Any:
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def create_chat_completion(self, **request: Any) -> ChatCompletion:
        self.chat_requests.append(request)
        return self._next()

    def create_image(self, **request: Any) -> ImagesResponse:
        self.image_requests.append(request)
        return self._next()

    @property
    def calls(self) -> int:
        return len(self.chat_requests) + len(self.image_requests)


def llm(fake: FakeLLM | None = None, **config: str) -> ScriptModule:
    values = {"api_key": "sk-test", "gpt_model": "gpt-4o-mini", "dalle_model": "dall-e-3", **config}
    module = LLMModule.with_config(**values)
    if fake is not None:
        module.set_client(fake)
    return module.load_module()


# ═════════════════════════════════════════════════════════════════════════════
# chat
# ═════════════════════════════════════════════════════════════════════════════


def test_chat_single_choice() -> None:
    fake = FakeLLM(completion("Hi there"))
    assert llm(fake)["chat"]("Say hi") == "Hi there"

    (request,) = fake.chat_requests
    assert request == {
        "model": "gpt-4o-mini",
        "messages": [{"role": "user", "content": "Say hi"}],
        "max_tokens": 64,
        "temperature": 1.0,
        "top_p": 1.0,
        "n": 1,
        "presence_penalty": 0.0,
        "frequency_penalty": 0.0,
        "response_format": {"type": "text"},
    }


def test_chat_many_choices() -> None:
    fake = FakeLLM(completion("a", "b", "c"))
    assert llm(fake)["chat"](text="options", n=3, temperature=0, stop="END") == ["a", "b", "c"]
    request = fake.chat_requests[0]
    assert request["n"] == 3
    assert request["temperature"] == 0.0
    assert request["stop"] == ["END"]


def test_chat_empty_and_null_content() -> None:
    assert llm(FakeLLM(completion()))["chat"]("x") is None
    assert llm(FakeLLM(completion(None)))["chat"]("x") == ""


def test_chat_full_response() -> None:
    result = llm(FakeLLM(completion("ok")))["chat"]("x", full_response=True)
    assert result["id"] == "chatcmpl-1"
    assert result["choices"][0]["message"]["content"] == "ok"


def test_chat_model_argument_overrides_config() -> None:
    fake = FakeLLM(completion("ok"))
    llm(fake)["chat"]("x", model="gpt-4o")
    assert fake.chat_requests[0]["model"] == "gpt-4o"


def test_chat_json_response_format() -> None:
    fake = FakeLLM(completion("{}"))
    llm(fake)["chat"]("x", response_format="json")
    assert fake.chat_requests[0]["response_format"] == {"type": "json_object"}


def test_chat_unknown_response_format() -> None:
    fake = FakeLLM(completion("ok"))
    with pytest.raises(ValidationError, match="unsupported response format: xml"):
        llm(fake)["chat"]("x", response_format="xml")
    assert fake.calls == 0


def test_chat_requires_a_message() -> None:
    fake = FakeLLM(completion("ok"))
    with pytest.raises(ValidationError, match="at least one message is required"):
        llm(fake)["chat"]()
    assert fake.calls == 0


def test_chat_strict_argument_types() -> None:
    chat = llm(FakeLLM(completion("ok")))["chat"]
    with pytest.raises(ArgumentError, match="for parameter n"):
        chat("x", n="2")
    with pytest.raises(ArgumentError, match="for parameter retry"):
        chat("x", retry=0)
    with pytest.raises(ArgumentError, match="for parameter allow_error"):
        chat("x", allow_error=1)
    with pytest.raises(ArgumentError, match="for parameter temperature"):
        chat("x", temperature=10**400)


# ═════════════════════════════════════════════════════════════════════════════
# message
# ═════════════════════════════════════════════════════════════════════════════


def test_message_records() -> None:
    message = llm()["message"]
    assert message(text="hi") == {"role": "user", "text": "hi"}
    assert message("system", "Be terse") == {"role": "system", "text": "Be terse"}
    assert message(image=b"\x89PNG") == {"role": "user", "image": b"\x89PNG"}


def test_messages_follow_direct_text() -> None:
    fake = FakeLLM(completion("ok"))
    module = llm(fake)
    history = [module["message"](role="system", text="Be terse"), module["message"](role="assistant", text="Sure")]
    module["chat"](text="hi", messages=history)
    assert fake.chat_requests[0]["messages"] == [
        {"role": "user", "content": "hi"},
        {"role": "system", "content": "Be terse"},
        {"role": "assistant", "content": "Sure"},
    ]


def test_image_message_parts(tmp_path: Path) -> None:
    photo = tmp_path / "cat.png"
    photo.write_bytes(png_bytes())
    (msg,) = messages_to_chat_messages([{
        "role": "user", "text": "what is this", "image_url": "https://x.io/a.jpg",
        "image": png_bytes(), "image_file": str(photo),
    }])
    text, url, inline, file = msg["content"]
    assert text == {"type": "text", "text": "what is this"}
    assert url["image_url"] == {"url": "https://x.io/a.jpg", "detail": "auto"}
    assert inline["image_url"]["url"].startswith("data:image/png;base64,")
    assert file["image_url"]["url"] == image_data_uri(png_bytes())


@pytest.mark.parametrize("records,message", [
    ([{"text": "hi"}], "message 1: role is required"),
    ([{"role": "user", "text": "a"}, {"role": "user"}], "message 2: at least one of text"),
    (["hi"], "message 1: got str, want dict"),
])
def test_bad_message_records(records: list[Any], message: str) -> None:
    with pytest.raises(ValidationError, match=message):
        messages_to_chat_messages(records)


def test_unreadable_image_file(tmp_path: Path) -> None:
    with pytest.raises(FileError, match="message 1: cannot read image file"):
        messages_to_chat_messages([{"role": "user", "image_file": str(tmp_path / "gone.png")}])


# ═════════════════════════════════════════════════════════════════════════════
# Retry & Errors
# ═════════════════════════════════════════════════════════════════════════════


def test_bad_request_fails_fast() -> None:
    fake = FakeLLM(api_error(openai.BadRequestError, 400, "invalid model"))
    with pytest.raises(TransportError) as exc:
        llm(fake)["chat"]("x", retry=5)
    assert exc.value.is_bad_request
    assert exc.value.error.operation == "llm.chat"
    assert fake.calls == 1


def test_transient_errors_retried() -> None:
    fake = FakeLLM(
        api_error(openai.RateLimitError, 429, "slow down"),
        api_error(openai.InternalServerError, 500, "oops"),
        completion("finally"),
    )
    assert llm(fake)["chat"]("x", retry=3) == "finally"
    assert fake.calls == 3


def test_retries_exhausted() -> None:
    fake = FakeLLM(api_error(openai.RateLimitError, 429, "slow down"))
    with pytest.raises(TransportError) as exc:
        llm(fake)["chat"]("x", retry=2)
    assert exc.value.error.code is ErrorCode.RATE_LIMITED
    assert fake.calls == 2


def test_default_is_single_attempt() -> None:
    fake = FakeLLM(api_error(openai.InternalServerError, 500, "oops"), completion("never"))
    with pytest.raises(TransportError):
        llm(fake)["chat"]("x")
    assert fake.calls == 1


def test_allow_error_returns_none() -> None:
    fake = FakeLLM(api_error(openai.BadRequestError, 400, "nope"))
    assert llm(fake)["chat"]("x", allow_error=True) is None
    assert llm(fake)["draw"]("x", allow_error=True) is None


def test_allow_error_keeps_argument_errors() -> None:
    with pytest.raises(ValidationError):
        llm(FakeLLM(completion("ok")))["chat"](allow_error=True)


def test_client_bug_not_retried_or_suppressed() -> None:
    fake = FakeLLM(TypeError("unexpected keyword argument 'seed'"))
    with pytest.raises(BindingException) as exc:
        llm(fake)["chat"]("x", retry=3, allow_error=True)
    assert not isinstance(exc.value, TransportError)
    assert exc.value.error.operation == "llm.chat"
    assert isinstance(exc.value.__cause__, TypeError)
    assert fake.calls == 1


# ═════════════════════════════════════════════════════════════════════════════
# Configuration
# ═════════════════════════════════════════════════════════════════════════════


def test_gpt_model_not_configured() -> None:
    fake = FakeLLM(completion("ok"))
    with pytest.raises(ModelNotConfigured, match="gpt model is not set"):
        llm(fake, gpt_model="")["chat"]("x")
    assert fake.calls == 0


def test_dalle_model_not_configured() -> None:
    with pytest.raises(ModelNotConfigured, match="dalle model is not set"):
        llm(FakeLLM(images(url="u")), dalle_model="")["draw"]("x")


def test_missing_api_key() -> None:
    with pytest.raises(MissingConfig, match="openai_api_key is not set"):
        llm(api_key="")["chat"]("x")


def test_unsupported_provider_through_module() -> None:
    with pytest.raises(UnsupportedProvider, match="unsupported provider: bedrock"):
        llm(provider="bedrock")["chat"]("x")


def test_make_openai_client() -> None:
    client = make_openai_client({"openai_provider": " OpenAI ", "openai_api_key": "sk-test"})
    assert isinstance(client, OpenAIClient)
    assert type(client.sdk) is OpenAI
    assert client.sdk.max_retries == 0


def test_make_azure_client() -> None:
    values = {"openai_provider": "azure", "openai_api_key": "k", "openai_endpoint_url": "https://me.openai.azure.com"}
    assert isinstance(make_openai_client(values).sdk, AzureOpenAI)
    with pytest.raises(MissingConfig, match="openai_endpoint_url"):
        make_openai_client({**values, "openai_endpoint_url": " "})


def test_set_client_wraps_sdk() -> None:
    module = LLMModule.with_config(api_key="sk-test", gpt_model="m")
    module.set_client(OpenAI(api_key="sk-test"))
    assert isinstance(module.binding.client, OpenAIClient)


# ═════════════════════════════════════════════════════════════════════════════
# draw & Images
# ═════════════════════════════════════════════════════════════════════════════


def test_draw_url() -> None:
    fake = FakeLLM(images(url="https://img/1.png"))
    assert llm(fake)["draw"]("a lighthouse at dawn") == "https://img/1.png"
    assert fake.image_requests[0] == {
        "prompt": "a lighthouse at dawn",
        "model": "dall-e-3",
        "n": 1,
        "quality": "standard",
        "size": "1024x1024",
        "style": "vivid",
        "response_format": "url",
    }


def test_draw_b64_returns_png() -> None:
    jpeg = base64.b64encode(png_bytes("JPEG")).decode()
    fake = FakeLLM(ImagesResponse.model_validate({"created": 0, "data": [{"b64_json": jpeg}, {"b64_json": jpeg}]}))
    pics = llm(fake)["draw"]("x", n=2, response_format="b64_json")
    assert len(pics) == 2
    assert all(p.startswith(b"\x89PNG\r\n\x1a\n") for p in pics)


def test_draw_prompt_required() -> None:
    draw = llm(FakeLLM(images(url="u")))["draw"]
    with pytest.raises(ArgumentError, match="missing argument for prompt"):
        draw()
    with pytest.raises(ValidationError, match="prompt is required"):
        draw("")


def test_detect_mime() -> None:
    assert detect_mime(png_bytes()) == "image/png"
    assert detect_mime(png_bytes("JPEG")) == "image/jpeg"
    assert detect_mime(b"not an image") == "application/octet-stream"


def test_image_file_uri_uses_extension(tmp_path: Path) -> None:
    path = tmp_path / "blob.unknownext"
    path.write_bytes(b"abc")
    assert image_file_uri(str(path)) == "data:application/octet-stream;base64,YWJj"


def test_decode_png_rejects_garbage() -> None:
    with pytest.raises(MarshalError):
        decode_png("!!not base64!!")
    with pytest.raises(MarshalError):
        decode_png(base64.b64encode(b"plain text").decode())
