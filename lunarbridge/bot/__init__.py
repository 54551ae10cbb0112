"""
Discord Bot Layer.

The bot client, plus the cogs dispatching interactions to the command
framework and Discord messages to the chat bridge.
"""

from lunarbridge.bot.client import LunarBot

__all__ = ["LunarBot"]
