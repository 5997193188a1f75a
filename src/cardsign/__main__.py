"""
Entry point for `python -m cardsign`.

Usage:
    python -m cardsign list
    python -m cardsign sign contract.pdf
    python -m cardsign verify contract.pdf
"""

from .ui.cli import main

main()
