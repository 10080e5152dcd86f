"""Entry point for ``python -m remote_tail``."""

from .cli import main


if __name__ == "__main__":
    raise SystemExit(main())
