"""Configuration for reposcout-semantic."""
