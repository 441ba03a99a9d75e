"""CLI commands for fieldsync."""
