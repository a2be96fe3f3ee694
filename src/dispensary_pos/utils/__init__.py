"""Utility helpers - money arithmetic and unit conversion."""
