"""Signing engine: certificate inspection, chain ordering, CMS assembly."""

from __future__ import annotations

__all__: list[str] = []
