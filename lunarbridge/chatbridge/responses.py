"""
Regular expressions for Hypixel's responses to guild commands.

Each builder returns a compiled, case-insensitive pattern matching the
success message and every error the server may answer the command with, so
``MinecraftChatManager.command`` can collect exactly the command's response.
Success patterns expose named groups (``target``, ``executor``, ...) for the
server message handler.
"""

import re

HYPIXEL_RANK = r"(?:\[.+?\] )?"
IGN_DEFAULT = r"\w{1,16}"
GUILD_RANK_DEFAULT = r"[a-zA-Z0-9 -]+"

_NAMED_GROUP = re.compile(r"\?P<.+?>")


def _join(*patterns: str) -> re.Pattern:
    return re.compile("|".join(patterns), re.IGNORECASE)


def _escape_ign(ign: str | None) -> str:
    return re.escape(ign) if ign else IGN_DEFAULT


# generic errors

MUST_BE_GM = r"^You must be the Guild Master to use that command[.!]?"
MISSING_PERMS = r"^You do not have permission to use this command[.!]?$"
RANK_MISSING_PERMS = r"^Your guild rank does not have permission to use this[.!]?$"


def unknown_ign(ign: str | None = None) -> str:
    return rf"^Can't find a player by the name of '{_escape_ign(ign)}'[.!]?$"


def player_not_in_guild(ign: str | None = None) -> str:
    return rf"^{HYPIXEL_RANK}{_escape_ign(ign)} is not in your guild[.!]?"


def unknown_rank(to: str | None = None) -> str:
    return rf"^I couldn't find a rank by the name of '{re.escape(to) if to else GUILD_RANK_DEFAULT}'[.!]?"


def generic_errors(ign: str | None = None, *, not_in_guild: bool = True) -> list[str]:
    patterns = [MUST_BE_GM, MISSING_PERMS, RANK_MISSING_PERMS, unknown_ign(ign)]
    if not_in_guild:
        patterns.append(player_not_in_guild(ign))
    return patterns


# demote

DEMOTE_ERROR_SELF = r"^You can only demote up to your own rank[.!]?$"


def demote_already_lowest(ign: str | None = None) -> str:
    return rf"^{HYPIXEL_RANK}{_escape_ign(ign)} is already the lowest rank"


def demote_gm(ign: str | None = None) -> str:
    return rf"^{HYPIXEL_RANK}{_escape_ign(ign)} is the guild master so can't be demoted[.!]?$"


def demote_success(ign: str | None = None, *, from_: str | None = None, to: str | None = None) -> str:
    return (
        rf"^{HYPIXEL_RANK}(?P<target>{_escape_ign(ign)}) was demoted from "
        rf"(?P<old_rank>{re.escape(from_) if from_ else GUILD_RANK_DEFAULT}) to "
        rf"(?P<new_rank>{re.escape(to) if to else GUILD_RANK_DEFAULT})$"
    )


def demote(ign: str | None = None, *, from_: str | None = None, to: str | None = None) -> re.Pattern:
    return _join(
        demote_success(ign, from_=from_, to=to),
        DEMOTE_ERROR_SELF,
        demote_already_lowest(ign),
        demote_gm(ign),
        *generic_errors(ign),
    )


# invite

INVITE_ERROR_PERMS = r"^You do not have permission to invite players[.!]?$"
INVITE_ERROR_CANNOT_INVITE = r"^You cannot invite this player to your guild[.!]?$"
INVITE_ERROR_GUILD_FULL = r"^Your guild is full[.!]?$"


def invite(ign: str | None = None) -> re.Pattern:
    name = _escape_ign(ign)
    return _join(
        rf"^You invited {HYPIXEL_RANK}{name} to your guild[.!]? They have 5 minutes to accept[.!]?$",
        rf"^You sent an offline invite to {HYPIXEL_RANK}{name}[.!]? "
        r"They will have 5 minutes to accept once they come online[.!]?$",
        rf"^You've already invited {HYPIXEL_RANK}{name} to your guild[.!]? Wait for them to accept[.!]?$",
        rf"^{HYPIXEL_RANK}{name} is already in (?:another|your) guild[.!]?$",
        INVITE_ERROR_PERMS,
        INVITE_ERROR_CANNOT_INVITE,
        INVITE_ERROR_GUILD_FULL,
        *generic_errors(ign, not_in_guild=False),
    )


# kick

KICK_ERROR_SELF = r"^You cannot kick yourself from the guild[.!]?$"
KICK_ERROR_PERMS = r"^You do not have permission to kick people from the guild[.!]?$"


def kick_success(target: str | None = None, executor: str | None = None) -> str:
    return (
        rf"^{HYPIXEL_RANK}(?P<target>{_escape_ign(target)}) was kicked from the guild by "
        rf"{HYPIXEL_RANK}(?P<executor>{_escape_ign(executor)})[.!]?$"
    )


def kick(target: str | None = None, executor: str | None = None) -> re.Pattern:
    return _join(
        kick_success(target, executor),
        KICK_ERROR_SELF,
        KICK_ERROR_PERMS,
        *generic_errors(target),
    )


# mute

MUTE_ERROR_GM = r"^You cannot mute the guild master[.!]?$"
MUTE_ERROR_SELF = r"^You cannot mute yourself from the guild[.!]?$"
MUTE_ERROR_RANK = r"^You cannot mute a guild member with a higher guild rank[.!]?$"
MUTE_ERROR_TOO_LONG = r"^You cannot mute someone for more than one month[.!]?$"
MUTE_ERROR_TOO_SHORT = r"^You cannot mute someone for less than a minute[.!]?$"
MUTE_ERROR_ALREADY_MUTED = r"^This player is already muted[.!]?$"


def _mute_target(target: str | None) -> str:
    if target == "everyone":
        return "the guild chat"
    return re.escape(target) if target else rf"{IGN_DEFAULT}|the guild chat"


def mute_success(target: str | None = None, executor: str | None = None) -> str:
    target_pattern = _mute_target(target)
    return (
        rf"^{HYPIXEL_RANK}(?P<executor>{_escape_ign(executor)}) has muted "
        rf"{HYPIXEL_RANK}(?P<target>{target_pattern}) for (?P<duration>\w+)"
    )


def mute(target: str | None = None, executor: str | None = None) -> re.Pattern:
    return _join(
        mute_success(target, executor),
        MUTE_ERROR_GM,
        MUTE_ERROR_SELF,
        MUTE_ERROR_RANK,
        MUTE_ERROR_TOO_LONG,
        MUTE_ERROR_TOO_SHORT,
        MUTE_ERROR_ALREADY_MUTED,
        *generic_errors(None if target == "everyone" else target),
    )


# unmute

UNMUTE_ERROR_NOT_MUTED = r"^(?:This player|The guild) is not muted[.!]?$"


def unmute_success(target: str | None = None, executor: str | None = None) -> str:
    target_pattern = _mute_target(target)
    return (
        rf"^{HYPIXEL_RANK}(?P<executor>{_escape_ign(executor)}) has unmuted "
        rf"{HYPIXEL_RANK}(?P<target>{target_pattern})"
    )


def unmute(target: str | None = None, executor: str | None = None) -> re.Pattern:
    return _join(
        unmute_success(target, executor),
        UNMUTE_ERROR_NOT_MUTED,
        *generic_errors(None if target == "everyone" else target),
    )


# promote

PROMOTE_ERROR_SELF = r"^You can only promote up to your own rank[.!]?"


def promote_already_highest(ign: str | None = None) -> str:
    return rf"^{HYPIXEL_RANK}{_escape_ign(ign)} is already the highest rank"


def promote_gm(ign: str | None = None) -> str:
    return rf"^{HYPIXEL_RANK}{_escape_ign(ign)} is the guild master so can't be promoted anymore[.!]?"


def promote_success(ign: str | None = None, *, from_: str | None = None, to: str | None = None) -> str:
    return (
        rf"^{HYPIXEL_RANK}(?P<target>{_escape_ign(ign)}) was promoted from "
        rf"(?P<old_rank>{re.escape(from_) if from_ else GUILD_RANK_DEFAULT}) to "
        rf"(?P<new_rank>{re.escape(to) if to else GUILD_RANK_DEFAULT})$"
    )


def promote(ign: str | None = None, *, from_: str | None = None, to: str | None = None) -> re.Pattern:
    return _join(
        promote_success(ign, from_=from_, to=to),
        PROMOTE_ERROR_SELF,
        promote_already_highest(ign),
        promote_gm(ign),
        *generic_errors(ign),
    )


def set_rank(ign: str | None = None, *, from_: str | None = None, to: str | None = None) -> re.Pattern:
    """Either direction; ``/g setrank`` answers with the promote or the demote message."""
    patterns = [
        demote_success(ign, from_=from_, to=to),
        DEMOTE_ERROR_SELF,
        demote_already_lowest(ign),
        demote_gm(ign),
        promote_success(ign, from_=from_, to=to),
        PROMOTE_ERROR_SELF,
        promote_already_highest(ign),
        promote_gm(ign),
        *generic_errors(ign),
        unknown_rank(to),
    ]
    # duplicate group names are not allowed within one pattern
    return _join(*(_NAMED_GROUP.sub("", pattern) for pattern in patterns))


# paginated commands (history, log, top)

PAGINATION_ERRORS = (
    r"^Page must be between 1 and \d+[.!]?$",
    r"^There are no logs to display[.!]?$",
    r"^There is no recent history to display[.!]?$",
    r"^Not a valid number[.!]?$",
    r"^Must be a positive number[.!]?$",
)


def pagination_errors(ign: str | None = None) -> re.Pattern:
    return _join(
        *PAGINATION_ERRORS,
        rf"'{_escape_ign(ign)}' is not a valid page number[.!]?$",
        MUST_BE_GM,
        MISSING_PERMS,
        RANK_MISSING_PERMS,
    )


# anti spam

_SPAM_MESSAGES = (
    "You cannot say the same message twice!",
    "You can only send a message once every half second!",
    "Blocked excessive spam.",
    "You are sending commands too fast! Please slow down.",
    "Please wait before doing that again!",
)


def _spam_pattern(message: str) -> str:
    return rf"^{re.escape(message.rstrip('.!'))}[.!]?$"


spam_messages = _join(*(_spam_pattern(message) for message in _SPAM_MESSAGES))
