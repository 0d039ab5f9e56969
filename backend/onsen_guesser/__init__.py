"""Onsen Guesser: guess where a hot spring photo was taken."""

__version__ = "1.0.0"
