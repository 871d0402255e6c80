"""Oahu transit feed index and trip planner."""

__version__ = "0.1.0"
