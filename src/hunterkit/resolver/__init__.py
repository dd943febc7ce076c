from __future__ import annotations

from .addresses import AddressResolver

__all__ = ["AddressResolver"]
