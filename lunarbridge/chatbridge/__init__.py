"""
In-game chat bridge.

Connects a Minecraft account on Hypixel to a Discord channel: guild chat
is forwarded to Discord and back, in-game commands are dispatched to the
bridge command collection, and commands sent in-game are correlated with
the server's free-text responses.
"""
