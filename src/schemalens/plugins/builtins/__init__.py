"""Plugins shipped with schemalens."""
