"""Allow ``python -m dep_advisor``."""

from __future__ import annotations

from .cli import main

if __name__ == "__main__":
    main()
