"""LLM binding: OpenAI / Azure OpenAI chat completion and image generation."""

from .binding import MODULE_NAME, ChatParams, DrawParams, LLMModule
from .clients import AZURE_API_VERSION, LLMClient, OpenAIClient, as_llm_client, make_openai_client
from .images import decode_png, detect_mime, image_data_uri, image_file_uri
from .messages import MessageParams, build_record, messages_to_chat_messages

__all__ = [
    "MODULE_NAME", "LLMModule", "ChatParams", "DrawParams", "MessageParams",
    "LLMClient", "OpenAIClient", "as_llm_client", "make_openai_client", "AZURE_API_VERSION",
    "messages_to_chat_messages", "build_record",
    "decode_png", "detect_mime", "image_data_uri", "image_file_uri",
]
