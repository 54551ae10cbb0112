"""
Command framework.

Application (slash / context menu) commands, in-game bridge commands and
dual commands available in both, their collections and the permission
override cache.
"""
