from __future__ import annotations


class SentinelStr(str):
    """String-like sentinel that retains identity semantics."""

    __slots__ = ()

    def __new__(cls, label: str):
        return super().__new__(cls, label)

    def __repr__(self) -> str:  # pragma: no cover - repr logic trivial
        return f"<Sentinel:{super().__str__()}>"


UNKNOWN_CLIENT = SentinelStr("unknown")


def is_known_client(client_key: str | None) -> bool:
    """True when a client identifier is usable for deduplication."""

    if not client_key:
        return False
    return client_key.strip().lower() != UNKNOWN_CLIENT


__all__ = ["UNKNOWN_CLIENT", "SentinelStr", "is_known_client"]
