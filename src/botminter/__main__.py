"""Allow ``python -m botminter``."""

from .cli import main

main()
