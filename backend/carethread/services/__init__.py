"""Thread engine services."""
