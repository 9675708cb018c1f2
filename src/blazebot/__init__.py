"""Blazebot: Blazium's Discord bot and link-preview web service."""

__version__ = "0.1.0"
