"""Automatically backport merged pull requests to other branches."""

__version__ = "0.1.0"
