"""In-game only commands, loaded by the bridge command collection."""
