"""
LunarBridge - Discord bot for running a Hypixel guild.

Links Discord accounts to Minecraft players, relays the in-game guild chat
to Discord and back, and runs staff commands (promote, mute, kick, polls)
either as Discord application commands or straight from in-game chat.
"""

__version__ = "0.1.0"
