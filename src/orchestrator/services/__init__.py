"""Settlement services."""
