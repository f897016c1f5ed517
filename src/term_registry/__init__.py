"""Canonical multi-locale term and placename registry."""

from __future__ import annotations

__version__ = "0.1.0"
