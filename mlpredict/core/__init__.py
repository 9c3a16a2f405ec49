"""Core utilities shared by the mlpredict runtime and CLI."""
