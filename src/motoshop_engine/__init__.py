"""Loyalty points, tier and payroll engine for a motorcycle shop."""

__version__ = "0.1.0"
