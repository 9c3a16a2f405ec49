"""Command line interface for mlpredict."""
