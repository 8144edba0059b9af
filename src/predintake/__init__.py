"""PredIntake - Polymarket market intake and approval console."""

__version__ = "0.1.0"
