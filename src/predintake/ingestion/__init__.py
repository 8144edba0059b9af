"""External market feeds."""
