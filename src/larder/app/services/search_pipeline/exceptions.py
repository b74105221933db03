"""Exceptions raised by search pipeline components."""

from __future__ import annotations


class InvalidSearchParams(ValueError):
    """Exception raised when search parameters fail validation."""


__all__ = ["InvalidSearchParams"]
