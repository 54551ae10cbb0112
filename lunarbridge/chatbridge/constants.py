"""Chat types, prefixes and the character classes Hypixel's chat cares about."""

import random
import re


class HypixelMessageType:
    GUILD = "GUILD"
    OFFICER = "OFFICER"
    PARTY = "PARTY"
    WHISPER = "WHISPER"


class ChatPrefix:
    GUILD = "/gc "
    OFFICER = "/oc "
    PARTY = "/pc "
    WHISPER = "/w "


PREFIX_BY_TYPE = {
    HypixelMessageType.GUILD: ChatPrefix.GUILD,
    HypixelMessageType.OFFICER: ChatPrefix.OFFICER,
    HypixelMessageType.PARTY: ChatPrefix.PARTY,
    HypixelMessageType.WHISPER: ChatPrefix.WHISPER,
}

# in-game chat input limit
MAX_MESSAGE_LENGTH = 256

# characters that don't render in mc chat
INVISIBLE_CHARACTER_REGEXP = re.compile("ࠀ|⭍")

# appended to a message to get it past Hypixel's "same message twice" filter
PADDING_CHUNKS = tuple(f" {chunk * 4}" for chunk in ("-", "_", "/"))

# any non-'-' and non-whitespace
DEFAULT_RESPONSE_REGEXP = re.compile(r"[^-\s\u2800\u180E\u200B]")

WHITESPACE_ONLY_REGEXP = re.compile(r"^[\s\u2003\u2800\u0020\u180E\u200B]*$")

# a line of dashes Hypixel wraps multi-line command responses in
LINE_SEPARATOR_REGEXP = re.compile(r"^-{29,}")
LINE_SEPARATOR_END_REGEXP = re.compile(r"[^-]-{29,}$")
SEPARATOR_STRIP_REGEXP = re.compile(r"^-{29,}|-{29,}$")

UNKNOWN_COMMAND_REGEXP = r'^Unknown command\. Type "help" for help\.$'

# content Hypixel's chat filter rejects, checked before sending to spare a retry
BLOCKED_EXPRESSIONS_REGEXP = re.compile(
    "|".join(
        (
            r"\b(?:e|cyber)?s[3e]x+\b",
            r"\bse(?:k|gg)s\b",
            r"nutte(?:[dr]| *sac)",
            r"\bslu+t+\b",
            r"\bth[0o]t\b",
            r"\bm+a+s+t+(?:u+|e+)r+b+a+t+e+s?\b",
            r"c *o *c *k(?:s?\b|sucker)",
            r"\bp *[3e] *n *[1i] *[5s]\b",
            r"d *(?:i+|1+) *c+ *k",
            r"pus{2,}y",
            r"\bdildo\b",
            r"orgasm",
            r"p[0o]rn",
            r"onlyfans",
            r"\bloli\b",
            r"\br+[@a]+p(?:e+d*|i+n+g+)\b",
            r"\bdrugs\b",
            r"cocain",
            r"\bk+\W*y+\W*s+\b",
            r"kill.*self",
            r"n+[1i]+g+(?:a+|e+r+)",
            r"f+a+g+(?:g+o+t+)?\b",
            r"\bretard",
        )
    ),
    re.IGNORECASE,
)

# dots of anything looking like a link are replaced, Hypixel blocks links
MAYBE_URL_REGEXP = re.compile(r"(?:https?://)?(?:\w+\.)+[a-z]{2,}\S*", re.IGNORECASE)
ALLOWED_URLS_REGEXP = re.compile(r"^(?:https?://)?(?:www\.)?(?:hypixel\.net|youtube\.com|youtu\.be|imgur\.com)(?:/|$)", re.IGNORECASE)
URL_DOT_REPLACEMENT = "\u0702"

# in-game replies counting as "yes" for whisper confirmations
REPLY_CONFIRMATION = ("y", "ye", "yes", "yea", "yeah", "yep", "ok", "k", "sure", "confirm")


def random_padding() -> str:
    return random.choice(PADDING_CHUNKS)


class ForwardRejection:
    """Why a Discord message could not be forwarded in-game."""

    BOT_MUTED = "bot_muted"
    ERROR = "error"
    HYPIXEL_BLOCKED = "hypixel_blocked"
    LOCAL_BLOCKED = "local_blocked"
    MESSAGE_SIZE = "message_size"
    SPAM = "spam"
    TIMEOUT = "timeout"


FORWARD_REJECTION_EMOJI = {
    ForwardRejection.BOT_MUTED: "\N{SPEAKER WITH CANCELLATION STROKE}",
    ForwardRejection.ERROR: "\N{CROSS MARK}",
    ForwardRejection.HYPIXEL_BLOCKED: "\N{NO ENTRY SIGN}",
    ForwardRejection.LOCAL_BLOCKED: "\N{NO ENTRY SIGN}",
    ForwardRejection.MESSAGE_SIZE: "\N{SCROLL}",
    ForwardRejection.SPAM: "\N{WARNING SIGN}",
    ForwardRejection.TIMEOUT: "\N{HOURGLASS}",
}

FORWARD_REJECTION_MESSAGE = {
    ForwardRejection.BOT_MUTED: "the bot is currently muted in-game",
    ForwardRejection.HYPIXEL_BLOCKED: "your message was blocked by Hypixel's chat filter",
    ForwardRejection.LOCAL_BLOCKED: "your message contains a blocked word or link",
    ForwardRejection.MESSAGE_SIZE: "your message is too long to be sent in-game",
    ForwardRejection.SPAM: "your message was blocked by Hypixel's anti spam filter",
}
