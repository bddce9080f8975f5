"""Report definitions, query compilation, post-processing and export."""
