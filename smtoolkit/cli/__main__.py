"""
Entry point for running smtoolkit CLI as a module.

Usage: python -m smtoolkit.cli [command] [options]
"""

from .parser import main

if __name__ == "__main__":
    main()
