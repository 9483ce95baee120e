"""Event payload types and their JSON form.

Empty fields are left out of the JSON form. Timestamps are left out when
unset.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

TRANSACTION_TYPE = "transaction"
EVENT_TYPE = "event"
PROFILE_TYPE = "profile"
CHECK_IN_TYPE = "check_in"

SENSITIVE_HEADERS = frozenset({"Authorization", "Cookie", "X-Forwarded-For", "X-Real-Ip"})


class Level(str, Enum):
    """Severity of an event."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    FATAL = "fatal"


def _format_time(moment: datetime) -> str:
    """Format a timestamp as RFC 3339 with trailing fractional zeros dropped."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    text = moment.strftime("%Y-%m-%dT%H:%M:%S")
    if moment.microsecond:
        text += "." + f"{moment.microsecond:06d}".rstrip("0")
    offset = moment.utcoffset()
    if not offset:
        return text + "Z"
    total = int(offset.total_seconds())
    sign = "+" if total >= 0 else "-"
    hours, minutes = divmod(abs(total) // 60, 60)
    return f"{text}{sign}{hours:02d}:{minutes:02d}"


def _dump(value: Any) -> Any:
    """Turn a payload value into plain JSON-compatible data."""
    to_dict = getattr(value, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return _format_time(value)
    if isinstance(value, Mapping):
        return {str(key): _dump(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_dump(item) for item in value]
    if isinstance(value, (bytes, bytearray)):
        return value.decode("utf-8", errors="replace")
    return value


def _is_empty(value: Any) -> bool:
    if value is None or value is False:
        return True
    if isinstance(value, (str, bytes, list, tuple, dict, set, frozenset)):
        return len(value) == 0
    if isinstance(value, Mapping):
        return len(value) == 0
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value == 0
    return False


def _compact(pairs: Mapping[str, Any]) -> dict[str, Any]:
    """Dump the non-empty values of ``pairs``."""
    return {key: _dump(value) for key, value in pairs.items() if not _is_empty(value)}


@dataclass
class SdkPackage:
    """A package that was installed."""

    name: str = ""
    version: str = ""

    def to_dict(self) -> dict[str, Any]:
        return _compact({"name": self.name, "version": self.version})


@dataclass
class SdkInfo:
    """Metadata about the SDK that produced an event."""

    name: str = ""
    version: str = ""
    integrations: list[str] = field(default_factory=list)
    packages: list[SdkPackage] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            {
                "name": self.name,
                "version": self.version,
                "integrations": self.integrations,
                "packages": self.packages,
            }
        )


@dataclass
class Breadcrumb:
    """An application event that happened before an event was captured."""

    type: str = ""
    category: str = ""
    message: str = ""
    data: dict[str, Any] = field(default_factory=dict)
    level: Level | str = ""
    timestamp: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON form; an unset timestamp is left out."""
        return _compact(
            {
                "type": self.type,
                "category": self.category,
                "message": self.message,
                "data": self.data,
                "level": self.level,
                "timestamp": self.timestamp,
            }
        )


@dataclass
class Attachment:
    """A file associated with an event; not part of the event's JSON."""

    filename: str
    content_type: str = ""
    payload: bytes = b""


@dataclass
class User:
    """The user associated with an event."""

    id: str = ""
    email: str = ""
    ip_address: str = ""
    username: str = ""
    name: str = ""
    segment: str = ""
    data: dict[str, str] = field(default_factory=dict)

    def is_empty(self) -> bool:
        """Report whether no field of the user is set."""
        return not any(
            (
                self.id,
                self.email,
                self.ip_address,
                self.username,
                self.name,
                self.segment,
                self.data,
            )
        )

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            {
                "id": self.id,
                "email": self.email,
                "ip_address": self.ip_address,
                "username": self.username,
                "name": self.name,
                "segment": self.segment,
                "data": self.data,
            }
        )


@dataclass
class Request:
    """The HTTP request related to an event."""

    url: str = ""
    method: str = ""
    data: str = ""
    query_string: str = ""
    cookies: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    env: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            {
                "url": self.url,
                "method": self.method,
                "data": self.data,
                "query_string": self.query_string,
                "cookies": self.cookies,
                "headers": self.headers,
                "env": self.env,
            }
        )


@dataclass
class Mechanism:
    """How an exception was generated and whether it was handled."""

    type: str = ""
    description: str = ""
    help_link: str = ""
    handled: bool | None = None
    data: dict[str, Any] = field(default_factory=dict)

    def set_unhandled(self) -> None:
        """Mark the exception as unhandled, as after a crash."""
        self.handled = False

    def to_dict(self) -> dict[str, Any]:
        result = _compact(
            {
                "type": self.type,
                "description": self.description,
                "help_link": self.help_link,
            }
        )
        if self.handled is not None:
            result["handled"] = self.handled
        if self.data:
            result["data"] = _dump(self.data)
        return result


@dataclass
class ExceptionInfo:
    """An error that occurred; ``type`` is the issue title, ``value`` its subtitle."""

    type: str = ""
    value: str = ""
    module: str = ""
    thread_id: str = ""
    stacktrace: Any = None
    mechanism: Mechanism | None = None

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            {
                "type": self.type,
                "value": self.value,
                "module": self.module,
                "thread_id": self.thread_id,
                "stacktrace": self.stacktrace,
                "mechanism": self.mechanism,
            }
        )


@dataclass
class Thread:
    """A thread that was running when an event happened."""

    id: str = ""
    name: str = ""
    stacktrace: Any = None
    crashed: bool = False
    current: bool = False

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            {
                "id": self.id,
                "name": self.name,
                "stacktrace": self.stacktrace,
                "crashed": self.crashed,
                "current": self.current,
            }
        )


@dataclass
class DebugMetaSdkInfo:
    """SDK information carried in debug metadata."""

    sdk_name: str = ""
    version_major: int = 0
    version_minor: int = 0
    version_patchlevel: int = 0

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            {
                "sdk_name": self.sdk_name,
                "version_major": self.version_major,
                "version_minor": self.version_minor,
                "version_patchlevel": self.version_patchlevel,
            }
        )


@dataclass
class DebugMetaImage:
    """A debug image referenced by an event."""

    type: str = ""
    image_addr: str = ""
    image_size: int = 0
    debug_id: str = ""
    debug_file: str = ""
    code_id: str = ""
    code_file: str = ""
    image_vmaddr: str = ""
    arch: str = ""
    uuid: str = ""

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            {
                "type": self.type,
                "image_addr": self.image_addr,
                "image_size": self.image_size,
                "debug_id": self.debug_id,
                "debug_file": self.debug_file,
                "code_id": self.code_id,
                "code_file": self.code_file,
                "image_vmaddr": self.image_vmaddr,
                "arch": self.arch,
                "uuid": self.uuid,
            }
        )


@dataclass
class DebugMeta:
    """Debug metadata, usually forwarded from events of other platforms."""

    sdk_info: DebugMetaSdkInfo | None = None
    images: list[DebugMetaImage] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return _compact({"sdk_info": self.sdk_info, "images": self.images})


@dataclass
class EventHint:
    """Extra information that travels with an event through processing."""

    data: Any = None
    event_id: str = ""
    original_exception: BaseException | None = None
    recovered_exception: Any = None
    context: Any = None
    request: Any = None
    response: Any = None


@dataclass
class Event:
    """The data structure sent for errors, messages and transactions."""

    breadcrumbs: list[Breadcrumb] = field(default_factory=list)
    contexts: dict[str, dict[str, Any]] = field(default_factory=dict)
    dist: str = ""
    environment: str = ""
    event_id: str = ""
    extra: dict[str, Any] = field(default_factory=dict)
    fingerprint: list[str] = field(default_factory=list)
    level: Level | str = ""
    message: str = ""
    platform: str = ""
    release: str = ""
    sdk: SdkInfo = field(default_factory=SdkInfo)
    server_name: str = ""
    threads: list[Thread] = field(default_factory=list)
    tags: dict[str, str] = field(default_factory=dict)
    timestamp: datetime | None = None
    transaction: str = ""
    user: User = field(default_factory=User)
    logger: str = ""
    modules: dict[str, str] = field(default_factory=dict)
    request: Request | None = None
    exception: list[ExceptionInfo] = field(default_factory=list)
    debug_meta: DebugMeta | None = None
    type: str = ""
    start_time: datetime | None = None
    spans: list[Any] = field(default_factory=list)
    transaction_info: dict[str, Any] | None = None
    attachments: list[Attachment] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON form.

        Transaction-only fields are left out unless the event is a
        transaction; ``sdk`` and ``user`` are always present.
        """
        result = _compact(
            {
                "breadcrumbs": self.breadcrumbs,
                "contexts": self.contexts,
                "dist": self.dist,
                "environment": self.environment,
                "event_id": self.event_id,
                "extra": self.extra,
                "fingerprint": self.fingerprint,
                "level": self.level,
                "message": self.message,
                "platform": self.platform,
                "release": self.release,
            }
        )
        result["sdk"] = self.sdk.to_dict()
        result.update(
            _compact(
                {
                    "server_name": self.server_name,
                    "threads": self.threads,
                    "tags": self.tags,
                    "transaction": self.transaction,
                }
            )
        )
        result["user"] = self.user.to_dict()
        result.update(
            _compact(
                {
                    "logger": self.logger,
                    "modules": self.modules,
                    "request": self.request,
                    "exception": self.exception,
                    "debug_meta": self.debug_meta,
                    "timestamp": self.timestamp,
                }
            )
        )
        if self.type == TRANSACTION_TYPE:
            result.update(
                _compact(
                    {
                        "type": self.type,
                        "start_timestamp": self.start_time,
                        "spans": self.spans,
                        "transaction_info": self.transaction_info,
                    }
                )
            )
        return result

    def to_json(self) -> str:
        """Return the compact JSON encoding of :meth:`to_dict`."""
        return json.dumps(self.to_dict(), separators=(",", ":"), default=str)


def new_event() -> Event:
    """Return an event with empty contexts, extra, tags and modules."""
    return Event()