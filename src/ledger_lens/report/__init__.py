from __future__ import annotations

from .formatter import render_snapshot, render_transactions

__all__ = ["render_snapshot", "render_transactions"]
