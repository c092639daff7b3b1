"""Vireax observer kernel package."""

__all__ = [
    "field",
    "logging",
    "runtime",
]
