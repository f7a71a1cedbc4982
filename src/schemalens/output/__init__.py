"""Presentation layer — view mapping, Rich renderers, and formatters."""
