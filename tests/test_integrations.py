import re

import pytest

from sentrylite.integrations import (
    EnvironmentIntegration,
    GlobalTagsIntegration,
    IgnoreErrorsIntegration,
    IgnoreTransactionsIntegration,
    Module,
    extract_modules,
    get_ignore_errors_suspects,
    load_env_tags,
    transform_strings_into_regexps,
)
from sentrylite.protocol import Event, EventHint, ExceptionInfo


def test_transform_strings_into_regexps_skips_invalid():
    got = transform_strings_into_regexps(["+", "foo", "*", "(?i)bar", "[]"])
    assert [p.pattern for p in got] == ["foo", "(?i)bar"]
    assert got[1].search("BAR") is not None


def test_suspects_empty_event():
    assert get_ignore_errors_suspects(Event()) == []


def test_suspects_message():
    assert get_ignore_errors_suspects(Event(message="foo")) == ["foo"]


def test_suspects_exception():
    event = Event(exception=[ExceptionInfo(type="exType", value="exVal")])
    assert get_ignore_errors_suspects(event) == ["exType", "exVal"]


def test_suspects_multiple_exceptions():
    event = Event(
        exception=[
            ExceptionInfo(type="exType", value="exVal"),
            ExceptionInfo(type="exTypeTwo", value="exValTwo"),
        ]
    )
    assert get_ignore_errors_suspects(event) == ["exType", "exVal", "exTypeTwo", "exValTwo"]


def test_suspects_message_and_exception():
    event = Event(message="foo", exception=[ExceptionInfo(type="exType", value="exVal")])
    assert get_ignore_errors_suspects(event) == ["foo", "exType", "exVal"]


def test_suspects_message_and_multiple_exceptions():
    event = Event(
        message="foo",
        exception=[
            ExceptionInfo(type="exType", value="exVal"),
            ExceptionInfo(type="exTypeTwo", value="exValTwo"),
        ],
    )
    assert get_ignore_errors_suspects(event) == [
        "foo",
        "exType",
        "exVal",
        "exTypeTwo",
        "exValTwo",
    ]


@pytest.fixture
def ignore_errors():
    return IgnoreErrorsIntegration([re.compile("foo"), re.compile("(?i)bar")])


@pytest.mark.parametrize(
    "event",
    [
        Event(message="foo"),
        Event(exception=[ExceptionInfo(type="foo")]),
        Event(exception=[ExceptionInfo(value="Bar")]),
    ],
)
def test_ignore_errors_drops(ignore_errors, event):
    assert ignore_errors.process(event, EventHint()) is None


@pytest.mark.parametrize(
    "event",
    [
        Event(message="dont"),
        Event(exception=[ExceptionInfo(type="really", value="dont")]),
    ],
)
def test_ignore_errors_keeps(ignore_errors, event):
    assert ignore_errors.process(event, EventHint()) is event


def test_ignore_errors_accepts_strings():
    integration = IgnoreErrorsIntegration(["+", "foo"])
    assert [p.pattern for p in integration.patterns] == ["foo"]
    assert integration.process(Event(message="a foo b")) is None


@pytest.fixture
def ignore_transactions():
    return IgnoreTransactionsIntegration(["foo", "(?i)bar"])


@pytest.mark.parametrize("name", ["foo", "Bar"])
def test_ignore_transactions_drops(ignore_transactions, name):
    assert ignore_transactions.process(Event(transaction=name), EventHint()) is None


def test_ignore_transactions_keeps(ignore_transactions):
    event = Event(transaction="dont")
    assert ignore_transactions.process(event, EventHint()) is event


def test_ignore_transactions_keeps_unnamed(ignore_transactions):
    event = Event(message="foo")
    assert ignore_transactions.process(event) is event


@pytest.mark.parametrize(
    "main, deps, want",
    [
        (Module("my/module", "(devel)"), [], {"my/module": "(devel)"}),
        (
            Module("my/module", "(devel)"),
            [
                Module("github.com/getsentry/sentry-go", "v0.5.1"),
                Module("github.com/gin-gonic/gin", "v1.4.0"),
            ],
            {
                "my/module": "(devel)",
                "github.com/getsentry/sentry-go": "v0.5.1",
                "github.com/gin-gonic/gin": "v1.4.0",
            },
        ),
        (
            Module("my/module", "(devel)"),
            [Module("github.com/getsentry/sentry-go", "v0.5.1", Module("pkg/sentry"))],
            {
                "my/module": "(devel)",
                "github.com/getsentry/sentry-go": "v0.5.1 => pkg/sentry",
            },
        ),
        (
            Module("my/module", "(devel)"),
            [
                Module(
                    "github.com/ugorji/go",
                    "v1.1.4",
                    Module("github.com/ugorji/go/codec", "v0.0.0-20190204201341-e444a5086c43"),
                )
            ],
            {
                "my/module": "(devel)",
                "github.com/ugorji/go": "v1.1.4 => github.com/ugorji/go/codec v0.0.0-20190204201341-e444a5086c43",
            },
        ),
    ],
    ids=["no deps", "deps", "local replace", "remote replace"],
)
def test_extract_modules(main, deps, want):
    assert extract_modules(main, deps) == want


def test_environment_does_not_override_existing_contexts():
    event = Event(
        contexts={
            "device": {"foo": "bar"},
            "os": {"name": "test"},
            "custom": {"key": "value"},
        }
    )
    result = EnvironmentIntegration().process(event, EventHint())
    assert result.contexts["device"]["foo"] == "bar"
    assert result.contexts["os"]["name"] == "test"
    assert result.contexts["custom"] == {"key": "value"}
    assert "arch" in result.contexts["device"]
    assert result.contexts["runtime"]["name"] == "python"


def test_environment_fills_empty_contexts():
    result = EnvironmentIntegration().process(Event())
    assert set(result.contexts) == {"device", "os", "runtime"}
    assert result.contexts["device"]["num_cpu"] >= 1
    assert result.contexts["runtime"]["num_threads"] >= 1


def test_load_env_tags():
    environ = {
        "SENTRY_TAGS_foo": "foo_value_env",
        "SENTRY_TAGS_bar": "bar_value_env",
        "OTHER": "ignored",
    }
    assert load_env_tags(environ) == {"foo": "foo_value_env", "bar": "bar_value_env"}


def test_load_env_tags_value_stops_at_equals():
    assert load_env_tags({"SENTRY_TAGS_x": "a=b"}) == {"x": "a"}


def test_load_env_tags_reads_process_environment(monkeypatch):
    monkeypatch.setenv("SENTRY_TAGS_region", "north")
    assert load_env_tags()["region"] == "north"


def test_global_tags_precedence():
    integration = GlobalTagsIntegration(
        tags={"foo": "foo_value_client_options", "baz": "baz_value_client_options"},
        env_tags=load_env_tags(
            {
                "SENTRY_TAGS_foo": "foo_value_env",
                "SENTRY_TAGS_bar": "bar_value_env",
                "SENTRY_TAGS_baz": "baz_value_env",
            }
        ),
    )
    event = Event(message="event message", tags={"foo": "foo_value_scope"})
    result = integration.process(event, EventHint())
    assert result.tags["foo"] == "foo_value_scope"
    assert result.tags["bar"] == "bar_value_env"
    assert result.tags["baz"] == "baz_value_client_options"


def test_global_tags_without_tags_leaves_event():
    event = Event(tags={"a": "b"})
    result = GlobalTagsIntegration(tags={}, env_tags={}).process(event)
    assert result.tags == {"a": "b"}


def test_global_tags_from_environment(monkeypatch):
    monkeypatch.setenv("SENTRY_TAGS_zone", "east")
    integration = GlobalTagsIntegration()
    assert integration.process(Event()).tags["zone"] == "east"