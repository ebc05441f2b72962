"""Background conversion tasks."""
