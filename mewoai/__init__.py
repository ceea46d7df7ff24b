"""MeWoai community bot and administrative dashboard."""
