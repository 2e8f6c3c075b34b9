"""
Dinner club admin API: seat assignments, credits and waitlists for
social dining events.
"""

__version__ = "0.1.0"
