"""Notification port — abstract interface for delivering triggers to people.

Hosts depend on this protocol, never on a specific messaging provider.
"""

from __future__ import annotations

from typing import Any, Protocol


class NotificationPort(Protocol):
    """Abstract notification interface used by hosts."""

    async def send_message(self, user_id: int, text: str, reply_markup: Any = None) -> None: ...
