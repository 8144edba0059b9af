"""Polymarket Gamma feed and live-data push channel."""
