"""
Selection controller for one open document.

States
------
- ``none``                nothing selected
- ``single(id)``          one block, which is also the anchor
- ``multi(ids, anchor)``  several blocks; ``anchor`` is where shift-range
                          extension starts

Transitions
-----------
- plain click on a block surface      -> ``single``, anchor = clicked block
- toggle click (ctrl/cmd)             -> add or remove the block; a newly
                                         added block becomes the anchor;
                                         an empty set goes back to ``none``
- range click (shift) with an anchor  -> every block between the anchor and
                                         the clicked block, inclusive
- click into editable content         -> clears the selection unless a
                                         modifier is held
- delete/backspace outside an editor  -> deletes all selected blocks

The anchor survives toggling itself off; only an empty selection or a new
plain click replaces it. Selection is never persisted.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from enum import Enum
from typing import TYPE_CHECKING

from studyblocks.core.contracts.block import Block
from studyblocks.core.settings import get_logger

if TYPE_CHECKING:
    from studyblocks.core.store import OptimisticStore

logger = get_logger(__name__)


class SelectionState(str, Enum):
    NONE = "none"
    SINGLE = "single"
    MULTI = "multi"


class SelectionController:
    """Tracks the selected block ids and the range anchor."""

    __slots__ = ("_keys", "_anchor")

    def __init__(self) -> None:
        self._keys: set[str] = set()
        self._anchor: str | None = None

    @classmethod
    def from_keys(cls, keys: Iterable[str], anchor: str | None = None) -> SelectionController:
        """Build a controller already holding ``keys`` (e.g. from an API payload)."""
        controller = cls()
        controller._keys = set(keys)
        if controller._keys:
            controller._anchor = anchor if anchor is not None else min(controller._keys)
        return controller

    # ------------------------------------------------------------------ state

    @property
    def state(self) -> SelectionState:
        if not self._keys:
            return SelectionState.NONE
        if len(self._keys) == 1:
            return SelectionState.SINGLE
        return SelectionState.MULTI

    @property
    def keys(self) -> frozenset[str]:
        return frozenset(self._keys)

    @property
    def anchor(self) -> str | None:
        return self._anchor

    def __contains__(self, key: object) -> bool:
        return key in self._keys

    def __len__(self) -> int:
        return len(self._keys)

    def is_group_drag(self, key: str) -> bool:
        """True when dragging ``key`` should move the whole selection."""
        return key in self._keys and len(self._keys) > 1

    # ------------------------------------------------------------ transitions

    def click(
        self,
        key: str,
        visual_order: Sequence[str],
        *,
        toggle: bool = False,
        extend: bool = False,
    ) -> frozenset[str]:
        """Handle a click on the non-editable surface of block ``key``.

        Parameters
        ----------
        key:
            Id of the clicked block.
        visual_order:
            Block ids in their current on-screen order (for range clicks).
        toggle:
            Toggle modifier held (ctrl/cmd).
        extend:
            Range modifier held (shift).
        """
        if extend and self._anchor in visual_order and key in visual_order:
            start = visual_order.index(self._anchor)
            end = visual_order.index(key)
            low, high = min(start, end), max(start, end)
            self._keys = set(visual_order[low : high + 1])
        elif toggle:
            if key in self._keys:
                self._keys.discard(key)
                if not self._keys:
                    self.clear()
            else:
                self._keys.add(key)
                self._anchor = key
        else:
            self._keys = {key}
            self._anchor = key
        return self.keys

    def focus_editable(self, *, modifier: bool = False) -> frozenset[str]:
        """A click landed inside editable content; edit intent wins."""
        if not modifier:
            self.clear()
        return self.keys

    def clear(self) -> None:
        self._keys = set()
        self._anchor = None

    def rekey(self, canonical: Callable[[str], str]) -> None:
        """Map every held id (and the anchor) through ``canonical``.

        Ids selected while a block was still pending are swapped for the
        permanent id the store committed since.
        """
        self._keys = {canonical(key) for key in self._keys}
        if self._anchor is not None:
            self._anchor = canonical(self._anchor)

    def prune(self, existing: Iterable[str]) -> None:
        """Forget ids that are no longer in the document."""
        self._keys &= set(existing)
        if not self._keys:
            self.clear()

    def ordered(self, blocks: Sequence[Block]) -> list[Block]:
        """Selected blocks in document order."""
        return [b for b in blocks if b.key in self._keys]

    def delete_selected(self, store: OptimisticStore, *, editing: bool = False) -> list[Block]:
        """Delete every selected block through ``store`` and reset to ``none``.

        Does nothing while focus is inside an editable region (the key press
        belongs to the editor) or when nothing is selected.
        """
        if editing or not self._keys:
            return store.blocks
        self.rekey(store.canonical)
        victims = [b.key for b in self.ordered(store.blocks)]
        logger.debug("deleting %d selected blocks", len(victims))
        for key in victims:
            store.delete(key)
        self.clear()
        return store.blocks


__all__ = ["SelectionController", "SelectionState"]
