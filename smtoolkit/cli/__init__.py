"""
smtoolkit CLI module.

This module provides the command-line interface for smtoolkit.
"""

from .parser import CLI, main

__all__ = ["CLI", "main"]
