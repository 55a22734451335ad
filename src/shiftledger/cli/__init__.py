"""Command-line interface for shiftledger."""
