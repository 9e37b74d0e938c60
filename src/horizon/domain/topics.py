from __future__ import annotations

_WILDCARDS = ("+", "#")


def validate_topic(topic: str) -> str:
    """Return ``topic`` unchanged or raise ``ValueError``.

    A scope binds to exactly one concrete channel, so empty names,
    wildcards and NUL characters are rejected.
    """
    if not isinstance(topic, str) or not topic:
        raise ValueError("topic must be a non-empty string")
    if "\x00" in topic:
        raise ValueError(f"topic {topic!r} contains a NUL character")
    if any(w in topic for w in _WILDCARDS):
        raise ValueError(f"topic {topic!r} must not contain wildcards")
    return topic
