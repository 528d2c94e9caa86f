"""TaleType: a story typing game with quests, lives and live stats."""

__version__ = "0.1.0"
