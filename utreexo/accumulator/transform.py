"""Compute the node movements that a batch of deletions causes in the forest.

Deletions are processed one row at a time, bottom first.  Each row yields
swaps (nodes moving left into gaps) and at most one collapse: a deferred
move of a root, or of the sibling of a lone deletion, to where the root of
that row ends up.  Collapses are adjusted for the swaps of higher rows
before being appended to their own row.
"""

from __future__ import annotations

from typing import Optional, Sequence

from .utils import (
    MASK64,
    Arrow,
    extract_twins,
    merge_sorted,
    parent,
    parent_many,
    root_position,
)


def remove_transform(
    dels: Sequence[int], num_leaves: int, forest_rows: int
) -> list[list[Arrow]]:
    """Return, for every row from the bottom up, the arrows that remove
    the sorted positions ``dels`` from a forest of ``num_leaves`` leaves."""
    next_num_leaves = num_leaves - len(dels)
    swaps: list[list[Arrow]] = [[] for _ in range(forest_rows)]
    collapses: list[Optional[Arrow]] = [None] * forest_rows
    current = list(dels)

    for row in range(forest_rows):
        if not current:
            break

        root_present = bool(num_leaves & (1 << row))
        root_pos = root_position(num_leaves, row, forest_rows)

        # a deleted root simply disappears
        if root_present and current[-1] == root_pos:
            current.pop()
            root_present = False
        del_remains = len(current) % 2 != 0

        twin_next_dels, current = extract_twins(current, forest_rows)
        swaps[row] = make_swaps(current, del_remains, root_present, root_pos)
        collapses[row] = make_collapse(
            current, del_remains, root_present, row,
            num_leaves, next_num_leaves, forest_rows,
        )
        swap_next_dels = make_swap_next_dels(
            current, del_remains, root_present, forest_rows
        )
        current = merge_sorted(twin_next_dels, swap_next_dels)

    swap_collapses(swaps, collapses, forest_rows)

    for row, collapse in enumerate(collapses):
        if collapse is not None and collapse.src != collapse.dst:
            swaps[row].append(collapse)

    return swaps


def make_collapse(
    dels: Sequence[int],
    del_remains: bool,
    root_present: bool,
    row: int,
    num_leaves: int,
    next_num_leaves: int,
    forest_rows: int,
) -> Optional[Arrow]:
    """Return the collapse for ``row``, or None when there is none.

    A root with no leftover deletion moves to the new root position; a
    leftover deletion with no root promotes its sibling to the new root.
    """
    root_dest = root_position(next_num_leaves, row, forest_rows)
    if not del_remains and root_present:
        root_src = root_position(num_leaves, row, forest_rows)
        return Arrow(root_src, root_dest, collapse=True)
    if del_remains and not root_present:
        return Arrow(dels[-1] ^ 1, root_dest, collapse=True)
    return None


def make_swap_next_dels(
    dels: Sequence[int], del_remains: bool, root_present: bool, forest_rows: int
) -> list[int]:
    """Return the deletions that the swaps of this row push to the next row."""
    next_dels = [parent(dels[i + 1], forest_rows) for i in range(0, len(dels) - 1, 2)]
    if del_remains and not root_present:
        next_dels.append(parent(dels[-1], forest_rows))
    return next_dels


def make_swaps(
    dels: Sequence[int], del_remains: bool, root_present: bool, root_pos: int
) -> list[Arrow]:
    """Return the swaps for one row of non-twin deletions."""
    row_swaps = [Arrow(dels[i + 1] ^ 1, dels[i]) for i in range(0, len(dels) - 1, 2)]
    if del_remains and root_present:
        # the root fills the leftover deletion
        row_swaps.append(Arrow(root_pos, dels[-1]))
    return row_swaps


def _swap_in_row(
    arrow: Arrow, collapses: list[Optional[Arrow]], row: int, forest_rows: int
) -> None:
    for lower_row in range(row):
        collapse = collapses[lower_row]
        if collapse is None:
            continue
        collapse.dst ^= swap_if_descendant(arrow, collapse, row, lower_row, forest_rows)


def swap_collapses(
    swaps: list[list[Arrow]], collapses: list[Optional[Arrow]], forest_rows: int
) -> None:
    """Adjust, in place, the destinations of lower collapses for every swap
    and collapse in the rows above them."""
    if not collapses:
        return
    for row in range(len(collapses) - 1, 0, -1):
        for swap in swaps[row]:
            _swap_in_row(swap, collapses, row, forest_rows)
        collapse = collapses[row]
        if collapse is not None:
            _swap_in_row(collapse, collapses, row, forest_rows)


def swap_if_descendant(
    a: Arrow, b: Arrow, a_row: int, b_row: int, forest_rows: int
) -> int:
    """Return the mask to xor into ``b.dst`` if ``b.dst`` lies under exactly
    one end of ``a``; ``a`` must be on a higher row than ``b``."""
    hdiff = a_row - b_row
    bup = parent_many(b.dst, hdiff, forest_rows)
    if (bup == a.src) != (bup == a.dst):
        return ((a.src ^ a.dst) << hdiff) & MASK64
    return 0


def floor_transform(
    dels: Sequence[int], num_leaves: int, forest_rows: int
) -> list[Arrow]:
    """Return the leaf-level arrows for removing ``dels``."""
    floor: list[Arrow] = []
    for row, arrows in enumerate(remove_transform(dels, num_leaves, forest_rows)):
        for arrow in arrows:
            if arrow.src == arrow.dst:
                continue
            floor.extend(arrow.to_leaves(row, forest_rows))
    return floor