"""Textual intake console."""
