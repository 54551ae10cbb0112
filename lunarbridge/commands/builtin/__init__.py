"""Application (and dual) commands, loaded by the application command collection."""
