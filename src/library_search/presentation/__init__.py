"""Presentation layer: command-line entry point."""
