"""Allow running as ``python -m notionpress``."""

from .cli import app

if __name__ == "__main__":
    app()
