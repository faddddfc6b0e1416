"""Simulated EV charging pile — accelerated clock, time-of-day tariff, admission queue and billing."""

__version__ = "0.1.0"
