"""
Main entry point for running ghostcomment as a module.

This allows the package to be run with: python -m ghostcomment
"""

from .src.cli import main

if __name__ == '__main__':
    main()
