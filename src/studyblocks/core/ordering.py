"""
Ordering engine: pure functions over block sequences.

Every function takes a sequence of :class:`Block` objects and returns a *new*
list whose ``order`` values are re-derived from list position, so the dense
invariant (orders are exactly ``0..N-1``) holds after every call. Nothing in
this module performs I/O or touches the store.

Group moves
-----------
A drag library reports the drop destination against the list with only the
*dragged* block taken out. When several selected blocks travel together that
index no longer points anywhere meaningful in the list without the whole
selection, so :func:`move_group` translates it into an *anchor*: the first
non-selected block at or after the reported destination. The selection is
then spliced in front of the anchor (or appended when there is none),
keeping the selected blocks in their current relative order.
"""

from __future__ import annotations

from collections.abc import Collection, Sequence

from studyblocks.core.contracts.block import Block, BlockId


class OrderInvariantError(ValueError):
    """Raised when a block sequence's orders are not exactly ``0..N-1``."""


def reindex(blocks: Sequence[Block]) -> list[Block]:
    """Return ``blocks`` with ``order`` set to each block's list position."""
    out: list[Block] = []
    for position, block in enumerate(blocks):
        if block.order != position:
            block = block.model_copy(update={"order": position})
        out.append(block)
    return out


def is_dense(blocks: Sequence[Block]) -> bool:
    """True when the orders form ``0..N-1`` with no gaps or duplicates."""
    return sorted(b.order for b in blocks) == list(range(len(blocks)))


def check_dense(blocks: Sequence[Block]) -> None:
    """Raise :class:`OrderInvariantError` unless ``blocks`` is dense and sorted."""
    orders = [b.order for b in blocks]
    if orders != list(range(len(blocks))):
        raise OrderInvariantError(f"orders are not 0..{len(blocks) - 1}: {orders}")


def index_of(blocks: Sequence[Block], key: str) -> int:
    """Position of the block whose id string is ``key``, or ``-1``."""
    for position, block in enumerate(blocks):
        if block.key == key:
            return position
    return -1


def insert_block(blocks: Sequence[Block], block: Block, index: int) -> list[Block]:
    """Insert ``block`` at ``index`` (clamped to ``[0, N]``) and reindex."""
    index = min(max(index, 0), len(blocks))
    items = list(blocks)
    items.insert(index, block)
    return reindex(items)


def remove_block(blocks: Sequence[Block], key: str) -> tuple[list[Block], Block | None, int]:
    """Remove the block with id ``key``.

    Returns
    -------
    (blocks, removed, index)
        The reindexed remainder, the removed block (``None`` if absent) and
        the index it occupied (``-1`` if absent).
    """
    index = index_of(blocks, key)
    if index == -1:
        return list(blocks), None, -1
    items = list(blocks)
    removed = items.pop(index)
    return reindex(items), removed, index


def replace_block(blocks: Sequence[Block], key: str, block: Block) -> list[Block]:
    """Swap the block with id ``key`` for ``block`` at the same position."""
    index = index_of(blocks, key)
    if index == -1:
        raise KeyError(key)
    items = list(blocks)
    items[index] = block.model_copy(update={"order": index})
    return items


def move_block(
    blocks: Sequence[Block], source_index: int, destination_index: int
) -> list[Block]:
    """Move one block from ``source_index`` to ``destination_index``.

    ``destination_index`` is the block's final position, as reported by a
    drag library. Out-of-range indexes raise :class:`IndexError`.
    """
    size = len(blocks)
    if not 0 <= source_index < size:
        raise IndexError(f"source index {source_index} out of range for {size} blocks")
    if not 0 <= destination_index < size:
        raise IndexError(
            f"destination index {destination_index} out of range for {size} blocks"
        )
    items = list(blocks)
    moved = items.pop(source_index)
    items.insert(destination_index, moved)
    return reindex(items)


def move_group(
    blocks: Sequence[Block],
    dragged_key: str,
    selected_keys: Collection[str],
    destination_index: int,
) -> list[Block]:
    """Move every selected block as one contiguous run.

    Parameters
    ----------
    blocks:
        Current sequence.
    dragged_key:
        Id of the block physically dragged; must be part of the selection.
    selected_keys:
        Ids of all selected blocks.
    destination_index:
        Drop index reported against ``blocks`` with only the dragged block
        removed.
    """
    selected = set(selected_keys) | {dragged_key}
    selected_items = [b for b in blocks if b.key in selected]
    remaining = [b for b in blocks if b.key not in selected]

    without_dragged = [b for b in blocks if b.key != dragged_key]
    anchor: Block | None = None
    for candidate in without_dragged[max(destination_index, 0) :]:
        if candidate.key not in selected:
            anchor = candidate
            break

    if anchor is None:
        return reindex(remaining + selected_items)

    at = remaining.index(anchor)
    return reindex(remaining[:at] + selected_items + remaining[at:])


def plan_move(
    blocks: Sequence[Block],
    source_index: int,
    destination_index: int,
    selected_keys: Collection[str] = (),
) -> list[Block]:
    """Apply a drag: a group move when the dragged block is in a multi-selection."""
    if not 0 <= source_index < len(blocks):
        raise IndexError(f"source index {source_index} out of range for {len(blocks)} blocks")
    dragged = blocks[source_index]
    if dragged.key in selected_keys and len(selected_keys) > 1:
        return move_group(blocks, dragged.key, selected_keys, destination_index)
    return move_block(blocks, source_index, destination_index)


def order_pairs(blocks: Sequence[Block]) -> list[tuple[BlockId, int]]:
    """(id, order) pairs for a bulk reorder call."""
    return [(b.id, b.order) for b in blocks]


__all__ = [
    "OrderInvariantError",
    "check_dense",
    "index_of",
    "insert_block",
    "is_dense",
    "move_block",
    "move_group",
    "order_pairs",
    "plan_move",
    "reindex",
    "remove_block",
    "replace_block",
]
