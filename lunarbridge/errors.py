"""
Exception types shared by the command framework and the chat bridge.

``CommandError`` and its subclasses carry a message meant for the user who
invoked a command: the interaction handler replies with it (ephemeral) and
the in-game handler whispers it back. Anything else that escapes a command
is treated as a bug, logged with its traceback and reported generically.
"""

from __future__ import annotations

from collections.abc import Sequence


class CommandError(Exception):
    """User-facing error raised while running a command."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class MissingPermissionsError(CommandError):
    """The invoking user lacks a role or permission override for the command."""

    def __init__(
        self,
        reason: str,
        *,
        command: str | None = None,
        role_ids: Sequence[int] | None = None,
        role_names: Sequence[str] | None = None,
        guild_name: str | None = None,
    ) -> None:
        self.reason = reason
        self.command = command
        self.role_ids = list(role_ids or [])

        parts = [f"missing permissions: {reason}"]
        if command:
            parts.append(f"for the `{command}` command")
        if role_names or self.role_ids:
            names = role_names or [str(role_id) for role_id in self.role_ids]
            parts.append(f"(requires one of: {', '.join(names)}")
            parts[-1] += f" in {guild_name})" if guild_name else ")"
        super().__init__(" ".join(parts))


class CooldownError(CommandError):
    """The command was used again before its cooldown expired."""

    def __init__(self, command: str, remaining: float, formatted: str) -> None:
        self.command = command
        self.remaining = remaining
        super().__init__(f"`{command}` is on cooldown for another `{formatted}`")


class ChatBridgeError(Exception):
    """Sending to or receiving from the in-game chat failed."""
