"""Storage backends for fieldsync."""
