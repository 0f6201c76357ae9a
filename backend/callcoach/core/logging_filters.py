"""Logging filters that route event-bus records to their own file.

Records from ``callcoach.core.events`` (or flagged with ``is_event``) go to
``event.log``; everything else goes to ``backend.log``.
"""

import logging

EVENT_LOGGER_PREFIX = "callcoach.core.events"


def is_event_record(record: logging.LogRecord) -> bool:
    return record.name.startswith(EVENT_LOGGER_PREFIX) or getattr(record, "is_event", False)


class EventFilter(logging.Filter):
    """Pass only event-bus records."""

    def filter(self, record: logging.LogRecord) -> bool:
        return is_event_record(record)


class NonEventFilter(logging.Filter):
    """Drop event-bus records so backend.log stays free of them."""

    def filter(self, record: logging.LogRecord) -> bool:
        return not is_event_record(record)
