"""Allow ``python -m multirun``."""

from .cli import main

if __name__ == "__main__":
    main()
