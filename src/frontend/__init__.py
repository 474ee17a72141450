"""Outer surfaces for jqlive: Flask page/API and the terminal CLI."""
from __future__ import annotations
from .web import create_app

__all__ = ["create_app"]
