"""Core package for studyblocks.

Holds the block contracts, the ordering engine, the selection controller and
the optimistic store. Settings and logging helpers live in
:mod:`studyblocks.core.settings`.
"""

from __future__ import annotations

__all__ = ["__doc__"]
