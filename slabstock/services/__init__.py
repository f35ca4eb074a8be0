"""Import, export, matching and statistics services."""
