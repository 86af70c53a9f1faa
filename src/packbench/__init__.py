"""packbench — resource-usage regression benchmarks for the pack subcommand."""

__version__ = "0.1.0"
