"""Codebox - run commands in docker against registered workspaces."""

__version__ = "0.1.0"
