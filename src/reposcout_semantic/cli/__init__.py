"""Command-line interface for reposcout-semantic."""
