"""Chat message records: script-side dicts to OpenAI chat messages.

A script message record is a dict with ``role`` and at least one of
``text``, ``image`` (raw bytes), ``image_file`` (local path) and
``image_url``. ``message()`` builds such records; ``messages_to_chat_messages``
turns a list of them into the ``messages`` payload of a chat completion.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from scriptbind.args import NullableStringOrBytes, StringOrBytes
from scriptbind.foundation.errors import FileError, ValidationError

from .images import image_data_uri, image_file_uri

ROLE_USER = "user"
CONTENT_KEYS = ("text", "image", "image_file", "image_url")
IMAGE_DETAIL = "auto"

MessageRecord = dict[str, str | bytes]


def _user() -> NullableStringOrBytes:
    return NullableStringOrBytes(ROLE_USER)


def _null() -> NullableStringOrBytes:
    return NullableStringOrBytes.null()


class MessageParams(BaseModel):
    """Arguments of ``message``."""

    model_config = ConfigDict(extra="forbid")

    role: NullableStringOrBytes = Field(default_factory=_user)
    text: NullableStringOrBytes = Field(default_factory=_null)
    image: NullableStringOrBytes = Field(default_factory=_null)
    image_file: NullableStringOrBytes = Field(default_factory=_null)
    image_url: NullableStringOrBytes = Field(default_factory=_null)


def build_record(params: MessageParams | Any, *, role: str | None = None) -> MessageRecord:
    """Record holding the non-empty fields of ``params`` (values keep their str/bytes type)."""
    record: MessageRecord = {}
    if role is not None:
        record["role"] = role
    elif not params.role.is_null_or_empty():
        record["role"] = params.role.raw
    for key in CONTENT_KEYS:
        value: NullableStringOrBytes = getattr(params, key)
        if not value.is_null_or_empty():
            record[key] = value.raw
    return record


def _string(record: Mapping[str, Any], key: str) -> StringOrBytes | None:
    """Field value when present as str/bytes; anything else counts as absent."""
    value = record.get(key)
    return StringOrBytes(value) if isinstance(value, (str, bytes)) else None


def _image_part(url: str) -> dict[str, Any]:
    return {"type": "image_url", "image_url": {"url": url, "detail": IMAGE_DETAIL}}


def messages_to_chat_messages(records: Sequence[Mapping[str, Any]]) -> list[dict[str, Any]]:
    """Convert script message records to OpenAI chat messages.

    A text-only record becomes plain string content; any image turns the
    content into parts (text, image URL, inline image, image file, in that
    order). Records are numbered from 1 in errors.

    Raises:
        ValidationError: Record without role or without any content field
        FileError: ``image_file`` cannot be read
    """
    out: list[dict[str, Any]] = []
    for i, record in enumerate(records, start=1):
        if not isinstance(record, Mapping):
            raise ValidationError(f"message {i}: got {type(record).__name__}, want dict")
        if (role := _string(record, "role")) is None:
            raise ValidationError(f"message {i}: role is required")

        text, image, image_file, image_url = (_string(record, k) for k in CONTENT_KEYS)
        has_image = image is not None or image_file is not None or image_url is not None
        if text is None and not has_image:
            raise ValidationError(f"message {i}: at least one of text, image, image_file, or image_url is required")

        if not has_image:
            out.append({"role": role.text, "content": text.text})  # type: ignore[union-attr]
            continue

        parts: list[dict[str, Any]] = []
        if text is not None:
            parts.append({"type": "text", "text": text.text})
        if image_url is not None:
            parts.append(_image_part(image_url.text))
        if image is not None:
            parts.append(_image_part(image_data_uri(image.data)))
        if image_file is not None:
            try:
                parts.append(_image_part(image_file_uri(image_file.text)))
            except FileError as e:
                raise FileError(f"message {i}: {e.error.message}") from e
        out.append({"role": role.text, "content": parts})
    return out
