"""Entry point for ``python -m minimcp``."""

from .cli import main

if __name__ == "__main__":
    main()
