"""Email binding: send mail through the Resend HTTP API.

Scripts load it as ``email``:

    load("email", "send")
    send(subject="Report", body_markdown="# Done\\n\\n~~todo~~ shipped",
         to=["ops@example.com"], from_id="robot", attachment_files="report.csv")

Configuration keys: ``resend_api_key`` (required to send) and
``sender_domain`` (needed when ``from_id``/``reply_id`` are used).
"""

from __future__ import annotations

import base64
from pathlib import Path
from typing import Any, ClassVar

import httpx
from markdown_it import MarkdownIt
from pydantic import BaseModel, ConfigDict, Field, field_serializer

from scriptbind.args import NullableStringOrBytes, OneOrMany, StringOrBytes
from scriptbind.foundation.config import ConfigStore, Producer, get_settings, secret_value
from scriptbind.foundation.core import ConfigValues, ModuleBinding, ScriptModule, operation
from scriptbind.foundation.errors import FileError, MissingDomain, ValidationError
from scriptbind.runtime.observability import get_logger
from scriptbind.runtime.retry import as_transport_error

MODULE_NAME = "email"
RESEND_API_URL = "https://api.resend.com"

log = get_logger("scriptbind.email")


# ─────────────────────────────────────────────────────────────────────────────
# Wire Models
# ─────────────────────────────────────────────────────────────────────────────

class Attachment(BaseModel):
    """File attached to an outgoing message; content travels base64-encoded."""

    model_config = ConfigDict(frozen=True)

    filename: str
    content: bytes

    @field_serializer("content")
    def _encode_content(self, v: bytes) -> str:
        return base64.b64encode(v).decode("ascii")


class EmailRequest(BaseModel):
    """Resend ``POST /emails`` payload."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    sender: str = Field(alias="from")
    to: list[str]
    subject: str
    cc: list[str] = Field(default_factory=list)
    bcc: list[str] = Field(default_factory=list)
    reply_to: str | None = None
    html: str | None = None
    text: str | None = None
    attachments: list[Attachment] = Field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        data = self.model_dump(by_alias=True, exclude_none=True)
        # Resend rejects empty lists for optional recipients
        return {k: v for k, v in data.items() if v != []}


class ResendClient:
    """Minimal synchronous Resend API client over httpx."""

    __slots__ = ("_http",)

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = RESEND_API_URL,
        timeout: float = 30.0,
        user_agent: str = "scriptbind",
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._http = httpx.Client(
            base_url=base_url,
            headers={"Authorization": f"Bearer {api_key}", "User-Agent": user_agent},
            timeout=timeout,
            transport=transport,
        )

    def send(self, request: EmailRequest) -> str:
        """Send ``request``; returns the provider message id."""
        resp = self._http.post("/emails", json=request.to_payload())
        if resp.is_error:
            raise httpx.HTTPStatusError(
                f"resend: {resp.status_code} {_error_message(resp)}", request=resp.request, response=resp)
        return str(resp.json()["id"])

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> ResendClient:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text or resp.reason_phrase
    return str(body.get("message") or body) if isinstance(body, dict) else str(body)


# ─────────────────────────────────────────────────────────────────────────────
# Body Rendering
# ─────────────────────────────────────────────────────────────────────────────

_markdown = MarkdownIt("commonmark", {"html": True, "linkify": True}).enable(["table", "strikethrough", "linkify"])


def render_markdown(source: str) -> str:
    """Markdown to HTML with tables, strikethrough, autolinks and raw HTML."""
    return _markdown.render(source)


# ─────────────────────────────────────────────────────────────────────────────
# Script Module
# ─────────────────────────────────────────────────────────────────────────────

def _null() -> NullableStringOrBytes:
    return NullableStringOrBytes.null()


class SendParams(BaseModel):
    """Arguments of ``send``; order is the positional order."""

    model_config = ConfigDict(extra="forbid")

    subject: StringOrBytes
    body_html: NullableStringOrBytes = Field(default_factory=_null)
    body_text: NullableStringOrBytes = Field(default_factory=_null)
    body_markdown: NullableStringOrBytes = Field(default_factory=_null)
    to: OneOrMany[StringOrBytes]
    cc: OneOrMany[StringOrBytes] = Field(default_factory=OneOrMany)
    bcc: OneOrMany[StringOrBytes] = Field(default_factory=OneOrMany)
    sender: NullableStringOrBytes = Field(default_factory=_null, alias="from")
    from_id: NullableStringOrBytes = Field(default_factory=_null)
    reply_to: NullableStringOrBytes = Field(default_factory=_null)
    reply_id: NullableStringOrBytes = Field(default_factory=_null)
    attachment_files: OneOrMany[StringOrBytes] = Field(default_factory=OneOrMany)
    attachment: OneOrMany[dict[str, Any]] = Field(default_factory=OneOrMany)


class EmailModule:
    """The ``email`` script module.

    Example:
        >>> email = EmailModule.with_config(resend_api_key="re_...", sender_domain="example.com")
        >>> module = email.load_module()
        >>> module["send"](subject="hi", body_text="hello", to="bob@example.com", from_id="alice")
        '4ef9a417-02e9-4d39-ad75-9611e0fcc33c'
    """

    name: ClassVar[str] = MODULE_NAME
    CONFIG_KEYS: ClassVar[tuple[str, ...]] = ("resend_api_key", "sender_domain")

    __slots__ = ("binding", "_transport")

    def __init__(self, store: ConfigStore[str] | None = None, *, transport: httpx.BaseTransport | None = None) -> None:
        self.binding: ModuleBinding[ResendClient] = ModuleBinding(
            MODULE_NAME, store if store is not None else ConfigStore(self.CONFIG_KEYS),
            secret_keys=("resend_api_key",),
        )
        self._transport = transport

    @classmethod
    def with_config(cls, resend_api_key: str, sender_domain: str = "", **kw: Any) -> EmailModule:
        values = {"resend_api_key": resend_api_key, "sender_domain": sender_domain}
        return cls(ConfigStore.from_values(values, cls.CONFIG_KEYS), **kw)

    @classmethod
    def with_getters(cls, resend_api_key: Producer[str], sender_domain: Producer[str], **kw: Any) -> EmailModule:
        producers = {"resend_api_key": resend_api_key, "sender_domain": sender_domain}
        return cls(ConfigStore.from_producers(producers, cls.CONFIG_KEYS), **kw)

    @classmethod
    def from_settings(cls, **kw: Any) -> EmailModule:
        """Read ``RESEND_API_KEY``/``RESEND_SENDER_DOMAIN`` through the cached settings."""
        return cls.with_getters(
            lambda: secret_value(get_settings().email.api_key),
            lambda: get_settings().email.sender_domain,
            **kw,
        )

    def load_module(self) -> ScriptModule:
        return self.binding.register_operations({"send": self.send})

    def get_config(self) -> ConfigValues:
        return self.binding.get_config()

    # ─────────────────────────────────────────────────────────────────
    # send
    # ─────────────────────────────────────────────────────────────────

    @operation(SendParams)
    def send(self, params: SendParams) -> str:
        request = self.build_request(params)
        client = self.binding.resolve_client(self._make_client, required=("resend_api_key",))
        try:
            message_id = client.send(request)
        except httpx.HTTPError as e:
            raise as_transport_error(e) from e
        log.info("email sent", message_id=message_id, recipients=len(request.to),
                 attachments=len(request.attachments))
        return message_id

    def build_request(self, params: SendParams) -> EmailRequest:
        """Validate ``send`` arguments and assemble the provider request.

        Raises:
            ValidationError: No body, no recipient, no sender, bad attachment record
            MissingDomain: ``from_id``/``reply_id`` without a configured sender domain
            FileError: An attachment file cannot be read
        """
        if all(b.is_blank() for b in (params.body_html, params.body_text, params.body_markdown)):
            raise ValidationError("one of body_html, body_text, or body_markdown must be non-blank")
        if params.to.is_empty:
            raise ValidationError("to must be set and non-empty")
        if params.sender.is_blank() and params.from_id.is_blank():
            raise ValidationError("one of from or from_id must be non-blank")

        domain = self.binding.config.get_or("sender_domain", "").strip()
        sender = self._address(params.sender, params.from_id, domain, "from_id")
        reply_to = self._address(params.reply_to, params.reply_id, domain, "reply_id")

        html = text = None
        if not params.body_html.is_null_or_empty():
            html = params.body_html.text
        elif not params.body_text.is_null_or_empty():
            text = params.body_text.text
        else:
            html = render_markdown(params.body_markdown.text)

        return EmailRequest(
            sender=sender,
            to=[a.text for a in params.to],
            cc=[a.text for a in params.cc],
            bcc=[a.text for a in params.bcc],
            subject=params.subject.text,
            reply_to=reply_to,
            html=html,
            text=text,
            attachments=[*map(_read_attachment, params.attachment_files), *map(_record_attachment, params.attachment)],
        )

    @staticmethod
    def _address(address: NullableStringOrBytes, local_id: NullableStringOrBytes, domain: str, id_arg: str) -> str | None:
        """Full address, or ``<local_id>@<domain>``; None when neither is given."""
        if not address.is_blank():
            return address.text.strip()
        if local_id.is_blank():
            return None
        if not domain:
            raise MissingDomain(f"sender_domain should be set when {id_arg} is used")
        return f"{local_id.text.strip()}@{domain}"

    def _make_client(self, values: ConfigValues) -> ResendClient:
        http = get_settings().http
        return ResendClient(values["resend_api_key"] or "", timeout=http.timeout,
                            user_agent=http.user_agent, transport=self._transport)


def _read_attachment(path: StringOrBytes) -> Attachment:
    p = Path(path.text)
    try:
        content = p.read_bytes()
    except OSError as e:
        raise FileError(f"cannot read attachment {p}: {e.strerror or e}") from e
    return Attachment(filename=p.name, content=content)


def _record_attachment(record: dict[str, Any]) -> Attachment:
    if (name := record.get("name")) is None:
        raise ValidationError("attachment must have a name")
    if (content := record.get("content")) is None:
        raise ValidationError("attachment must have content")
    if not isinstance(name, (str, bytes)) or not isinstance(content, (str, bytes)):
        raise ValidationError("attachment name and content must be string or bytes")
    return Attachment(filename=StringOrBytes(name).text, content=StringOrBytes(content).data)
