"""
Entry point for ``python -m slotboard``.
"""

from .cli.app import app

if __name__ == "__main__":
    app()
