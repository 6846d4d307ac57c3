"""Command-line interface for agent-context."""
