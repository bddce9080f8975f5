"""Data source collaborators executing compiled report queries."""
