"""TikTok Publisher - OAuth login and pull-by-URL video publishing for TikTok."""

__version__ = "0.1.0"
