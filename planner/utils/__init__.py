"""Utility modules for the weekly planner."""
