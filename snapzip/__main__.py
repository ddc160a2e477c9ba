"""Allow ``python -m snapzip``."""

from .cli import app

if __name__ == "__main__":
    app()
