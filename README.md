# sentrylite

Small building blocks for an error-reporting client, written with the
standard library only.

## Modules

- `sentrylite.ratelimit`: reads rate limits from HTTP responses.
  `from_response(status_code, headers, now)` looks at the
  `X-Sentry-Rate-Limits` header first. If that header is missing and the
  status is 429, it uses `Retry-After`. The result is a `RateLimits` dict
  that maps each `Category` (`ALL`, `ERROR`, `TRANSACTION`) to a deadline.
  It offers `deadline()`, `is_rate_limited()` and `merge()`.
  - `parse_x_sentry_rate_limits`, `parse_xsrl_retry_after` and
    `parse_retry_after` parse the individual values.
  - Invalid retry-after values raise `InvalidRetryAfter`.
    For `parse_retry_after`, the exception's `deadline` holds a fallback
    deadline one minute after `now`.
  - `category_label()` gives a debugging name such as `CategoryError`.
- `sentrylite.traceparser`: splits a text dump of all goroutine stacks into
  a `TraceCollection` of `Trace` objects.
  - Each trace offers `goid()`, `frames()`, `frames_reversed()` and
    `frame_count_upper_bound()`.
  - Each `Frame` offers `func()` and `file()`. `file()` returns the path
    and the line number.
  - Lines that read `...additional frames elided...` are skipped.
- `sentrylite.baggage`: parses, validates and serialises W3C baggage
  strings.
  - It provides `Property`, `Member` and an immutable `Baggage`, along
    with `parse`, `parse_member`, `parse_property`, `new_member`,
    `new_baggage`, `new_key_property`, `new_key_value_property` and
    `percent_encode_value`.
  - Limits: at most 180 members, 4096 bytes per member and 8192 bytes per
    string.
  - Errors are subclasses of `BaggageError`.
- `sentrylite.protocol`: dataclasses for event payloads:
  - `Event`, `Breadcrumb`, `User`, `Request`, `Mechanism`, `ExceptionInfo`,
    `Thread`, `SdkInfo`, `SdkPackage`, `DebugMeta`, `DebugMetaSdkInfo`,
    `DebugMetaImage`, `Attachment`, `EventHint`, and the `Level` enum.
  - `to_dict()` leaves empty fields out. Timestamps are written in RFC 3339
    form and left out when unset.
  - `Event.to_dict()` includes the transaction-only fields only when
    `type == "transaction"`.
  - `Event.to_json()` returns compact JSON.
- `sentrylite.integrations`: event processors. Each has a
  `process(event, hint)` method.
  - `EnvironmentIntegration` fills in missing `device`, `os` and `runtime`
    contexts.
  - `IgnoreErrorsIntegration` and `IgnoreTransactionsIntegration` return
    `None` for events that match a regular expression. Invalid patterns are
    skipped.
  - `GlobalTagsIntegration` adds configured tags, then `SENTRY_TAGS_<name>`
    environment tags. It never overrides tags that the event already has.
  - Helpers: `extract_modules`, `transform_strings_into_regexps`,
    `get_ignore_errors_suspects` and `load_env_tags`.

## Installation

```
pip install sentrylite
```

## Examples

Reading rate limits from a response:

```python
from datetime import datetime, timezone
from sentrylite.ratelimit import Category, from_response

now = datetime.now(timezone.utc)
limits = from_response(429, {"Retry-After": "100"}, now)
limits.is_rate_limited(Category.ERROR, now)  # True
```

Working with baggage:

```python
from sentrylite.baggage import parse

bag = parse("userId=Am%C3%A9lie,isProduction=false")
bag.member("userId").value   # "Amélie"
str(bag.delete_member("isProduction"))  # "userId=Am%C3%A9lie"
```

Parsing a stack dump:

```python
from sentrylite.traceparser import parse

for trace in parse(dump_bytes):
    for frame in trace.frames():
        print(trace.goid(), frame.func(), *frame.file())
```

Building and filtering an event:

```python
from sentrylite.protocol import new_event
from sentrylite.integrations import IgnoreErrorsIntegration

event = new_event()
event.message = "connection reset"
integration = IgnoreErrorsIntegration(["(?i)connection reset"])
integration.process(event, None)  # None: the event is dropped
```

## What it does not do

The package provides pieces, not a complete client. It has no hub, scope,
client, transport or sampling, and it sends nothing over the network.
The processors in `sentrylite.integrations` are not wired into any pipeline;
call `process()` yourself.

The package also does not add source-code context to stack frames, and it
does not read the dependency list of the running program.
`extract_modules` only formats the `Module` records you pass to it.

## Running the tests

```
pip install -e ".[test]"
pytest
```