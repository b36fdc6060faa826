"""Contact Book API package."""
