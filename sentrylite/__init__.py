"""Building blocks for error-reporting clients: event payloads, rate limits, baggage, stack dump parsing and event processors."""

__version__ = "0.1.0"
__all__ = ["baggage", "integrations", "protocol", "ratelimit", "traceparser"]