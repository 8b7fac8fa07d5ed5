"""Kavach CLI - manage organizations and role bindings from the command line."""

__version__ = "0.1.0"
