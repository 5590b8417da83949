"""Errors raised while reading kbrecon settings."""

from __future__ import annotations


class ConfigurationError(ValueError):
    """An environment setting could not be parsed or is out of range."""

    def __init__(self, name: str, problem: str) -> None:
        super().__init__(f"{name} {problem}")
        self.name = name
