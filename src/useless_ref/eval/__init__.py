"""Evaluator helper modules for the useless runtime."""

__all__ = [
    "blocks",
    "common",
    "control",
    "expr",
    "fn",
    "helpers",
    "objects",
]
