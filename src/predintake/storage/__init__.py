"""DuckDB persistence for intake decisions."""
