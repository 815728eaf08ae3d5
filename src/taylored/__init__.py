"""Drift-tolerant patch synthesis, integrity checks and upgrades for git trees."""

__version__ = "0.4.0"

__all__ = ["__version__"]
