"""
Entry point for running smtoolkit CLI as a module.

Usage: python -m smtoolkit [command] [options]
"""

from smtoolkit.cli.parser import main

if __name__ == "__main__":
    main()
