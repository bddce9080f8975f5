"""Data warehouse models reported on by the built-in report types."""
