"""
Discord helpers.

Wrappers around discord.py objects that check permissions up front and log
failures instead of raising, plus the interaction reply state machine and
text utilities shared with the chat bridge.
"""
