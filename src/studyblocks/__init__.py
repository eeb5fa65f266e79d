"""studyblocks: block-based study documents with optimistic, ordered editing.

The package keeps a lecture summary (or exercise sheet) as an ordered list of
typed content blocks, applies editing operations to that list locally and
confirms them asynchronously against a persistence backend.
"""

from __future__ import annotations

__all__ = ["__version__"]
__version__ = "0.3.0"
