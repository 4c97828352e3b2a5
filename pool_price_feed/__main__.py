"""Entry point for ``python -m pool_price_feed``."""

from .cli import run

if __name__ == "__main__":
    run()
