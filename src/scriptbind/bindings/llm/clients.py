"""OpenAI / Azure OpenAI client construction.

The binding talks to a narrow ``LLMClient`` protocol so tests (and hosts with
their own gateway) can substitute any object returning the SDK's response
models. ``OpenAIClient`` adapts the official SDK to it.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from openai import AzureOpenAI, OpenAI
from openai.types import ImagesResponse
from openai.types.chat import ChatCompletion

from scriptbind.foundation.core import ConfigValues
from scriptbind.foundation.errors import MissingConfig, UnsupportedProvider

AZURE_API_VERSION = "2024-02-01"
DEFAULT_PROVIDER = "openai"


@runtime_checkable
class LLMClient(Protocol):
    """Chat completion and image generation calls used by the ``llm`` module."""

    def create_chat_completion(self, **request: Any) -> ChatCompletion: ...

    def create_image(self, **request: Any) -> ImagesResponse: ...


class OpenAIClient:
    """LLMClient backed by an ``openai.OpenAI`` (or ``AzureOpenAI``) instance."""

    __slots__ = ("sdk",)

    def __init__(self, sdk: OpenAI) -> None:
        self.sdk = sdk

    def create_chat_completion(self, **request: Any) -> ChatCompletion:
        return self.sdk.chat.completions.create(**request)

    def create_image(self, **request: Any) -> ImagesResponse:
        return self.sdk.images.generate(**request)

    def __repr__(self) -> str:
        return f"OpenAIClient({type(self.sdk).__name__}, base_url={str(self.sdk.base_url)!r})"


def as_llm_client(client: LLMClient | OpenAI) -> LLMClient:
    """Accept a raw SDK client wherever an LLMClient is expected."""
    return OpenAIClient(client) if isinstance(client, OpenAI) else client


def make_openai_client(values: ConfigValues, *, timeout: float = 30.0) -> OpenAIClient:
    """Build the SDK client for the configured provider.

    The SDK's own retries are disabled; the ``retry`` argument of each call
    is the only retry loop.

    Raises:
        MissingConfig: Azure selected without ``openai_endpoint_url``
        UnsupportedProvider: Provider is neither ``openai`` nor ``azure``
    """
    provider = (values.get("openai_provider") or DEFAULT_PROVIDER).strip().lower()
    api_key = values["openai_api_key"]
    endpoint = (values.get("openai_endpoint_url") or "").strip()
    match provider:
        case "openai":
            sdk: OpenAI = OpenAI(api_key=api_key, base_url=endpoint or None, max_retries=0, timeout=timeout)
        case "azure":
            if not endpoint:
                raise MissingConfig("openai_endpoint_url")
            # requests address the deployment named by the call's model
            sdk = AzureOpenAI(api_key=api_key, azure_endpoint=endpoint, api_version=AZURE_API_VERSION,
                              max_retries=0, timeout=timeout)
        case _:
            raise UnsupportedProvider(f"unsupported provider: {provider}")
    return OpenAIClient(sdk)
