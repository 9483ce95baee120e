"""Event processors that enrich or filter events before they are sent."""

from __future__ import annotations

import logging
import os
import platform
import re
import sys
import threading
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import ClassVar

from sentrylite.protocol import Event, EventHint

logger = logging.getLogger(__name__)

ENV_TAGS_PREFIX = "SENTRY_TAGS_"


@dataclass(frozen=True)
class Module:
    """A dependency of the running program, optionally replaced by another."""

    path: str
    version: str = ""
    replace: Module | None = None


def extract_modules(main: Module, deps: Iterable[Module] = ()) -> dict[str, str]:
    """Map each module path to its version, noting any replacement."""
    modules = {main.path: main.version}
    for dep in deps:
        version = dep.version
        if dep.replace is not None:
            version += f" => {dep.replace.path} {dep.replace.version}"
        modules[dep.path] = version.removesuffix(" ")
    return modules


def transform_strings_into_regexps(patterns: Iterable[str | re.Pattern[str]]) -> list[re.Pattern[str]]:
    """Compile the patterns, silently skipping those that are invalid."""
    compiled = []
    for pattern in patterns:
        if isinstance(pattern, re.Pattern):
            compiled.append(pattern)
            continue
        try:
            compiled.append(re.compile(pattern))
        except re.error:
            continue
    return compiled


def get_ignore_errors_suspects(event: Event) -> list[str]:
    """Return the message and each exception's type and value, in order."""
    suspects = []
    if event.message:
        suspects.append(event.message)
    for exception in event.exception:
        suspects.extend((exception.type, exception.value))
    return suspects


def load_env_tags(environ: Mapping[str, str] | None = None) -> dict[str, str]:
    """Collect tags from ``SENTRY_TAGS_<name>`` environment variables."""
    if environ is None:
        environ = os.environ
    tags = {}
    for name, value in environ.items():
        if not name.startswith(ENV_TAGS_PREFIX):
            continue
        tags[name[len(ENV_TAGS_PREFIX):]] = value.split("=")[0]
    return tags


class EnvironmentIntegration:
    """Adds device, OS and runtime contexts without overriding existing data."""

    name: ClassVar[str] = "Environment"

    def process(self, event: Event, hint: EventHint | None = None) -> Event:
        """Fill in missing device, os and runtime context entries."""
        if event.contexts is None:
            event.contexts = {}
        for context_name in ("device", "os", "runtime"):
            if event.contexts.get(context_name) is None:
                event.contexts[context_name] = {}

        device = event.contexts["device"]
        device.setdefault("arch", platform.machine())
        device.setdefault("num_cpu", os.cpu_count() or 1)

        event.contexts["os"].setdefault("name", sys.platform)

        runtime = event.contexts["runtime"]
        runtime.setdefault("name", "python")
        runtime.setdefault("version", platform.python_version())
        runtime.setdefault("implementation", platform.python_implementation())
        runtime.setdefault("num_threads", threading.active_count())
        return event


@dataclass
class IgnoreErrorsIntegration:
    """Drops events whose message or exceptions match any pattern."""

    patterns: list[re.Pattern[str]] = field(default_factory=list)
    name: ClassVar[str] = "IgnoreErrors"

    def __post_init__(self) -> None:
        self.patterns = transform_strings_into_regexps(self.patterns)

    def process(self, event: Event, hint: EventHint | None = None) -> Event | None:
        """Return the event, or None when it should be dropped."""
        for suspect in get_ignore_errors_suspects(event):
            for pattern in self.patterns:
                if pattern.search(suspect):
                    logger.info(
                        "Event dropped due to being matched by `IgnoreErrors` option."
                        "| Value matched: %s | Filter used: %s",
                        suspect,
                        pattern.pattern,
                    )
                    return None
        return event


@dataclass
class IgnoreTransactionsIntegration:
    """Drops events whose transaction name matches any pattern."""

    patterns: list[re.Pattern[str]] = field(default_factory=list)
    name: ClassVar[str] = "IgnoreTransactions"

    def __post_init__(self) -> None:
        self.patterns = transform_strings_into_regexps(self.patterns)

    def process(self, event: Event, hint: EventHint | None = None) -> Event | None:
        """Return the event, or None when it should be dropped."""
        suspect = event.transaction
        if not suspect:
            return event
        for pattern in self.patterns:
            if pattern.search(suspect):
                logger.info(
                    "Transaction dropped due to being matched by `IgnoreTransactions` option."
                    "| Value matched: %s | Filter used: %s",
                    suspect,
                    pattern.pattern,
                )
                return None
        return event


@dataclass
class GlobalTagsIntegration:
    """Adds configured tags, then environment tags, to events lacking them."""

    tags: dict[str, str] = field(default_factory=dict)
    env_tags: dict[str, str] | None = None
    name: ClassVar[str] = "GlobalTags"

    def __post_init__(self) -> None:
        self.tags = dict(self.tags)
        if self.env_tags is None:
            self.env_tags = load_env_tags()
        else:
            self.env_tags = dict(self.env_tags)

    def process(self, event: Event, hint: EventHint | None = None) -> Event:
        """Set each global tag that the event does not already carry."""
        if not self.tags and not self.env_tags:
            return event
        if event.tags is None:
            event.tags = {}
        for source in (self.tags, self.env_tags):
            for key, value in source.items():
                event.tags.setdefault(key, value)
        return event