from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

from jobworth.core.sentinels import UNKNOWN_CLIENT

__all__ = ["ClientIdentity", "extract_client_identity"]


@dataclass(frozen=True, slots=True)
class ClientIdentity:
    """Best-effort identity of the caller, used only for deduplication."""

    key: str = UNKNOWN_CLIENT
    user_agent: Optional[str] = None

    def as_info(self) -> dict[str, Any]:
        info: dict[str, Any] = {"ip": self.key}
        if self.user_agent:
            info["user_agent"] = self.user_agent
        return info


def _first_hop(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    first = value.split(",")[0].strip()
    return first or None


def extract_client_identity(headers: Mapping[str, str], peer_host: Optional[str] = None) -> ClientIdentity:
    """Resolve the client address from proxy headers, then the socket peer.

    ``X-Forwarded-For`` contributes its first (client-most) hop only.
    """
    key = (
        _first_hop(headers.get("x-forwarded-for"))
        or _first_hop(headers.get("x-real-ip"))
        or (peer_host.strip() if peer_host and peer_host.strip() else None)
        or UNKNOWN_CLIENT
    )
    return ClientIdentity(key=key[:255], user_agent=headers.get("user-agent"))
