"""Position arithmetic for the utreexo forest.

Nodes are addressed by a single integer position.  Leaves occupy
positions ``0 .. 2**forest_rows - 1``; each row above follows directly after
the row below it.  All arithmetic follows unsigned 64-bit semantics.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from itertools import pairwise
from typing import Iterable, Sequence

MASK64 = (1 << 64) - 1


@dataclass
class Arrow:
    """Movement of a node from position ``src`` to position ``dst``."""

    src: int
    dst: int
    collapse: bool = False

    def to_leaves(self, row: int, forest_rows: int) -> list[Arrow]:
        """Expand this arrow at ``row`` into the leaf arrows below it."""
        if row == 0:
            return [Arrow(self.src, self.dst, self.collapse)]
        run = 1 << row
        from_start = child_many(self.src, row, forest_rows)
        to_start = child_many(self.dst, row, forest_rows)
        return [Arrow(from_start + i, to_start + i) for i in range(run)]


def proof_positions(
    targets: Iterable[int], num_leaves: int, forest_rows: int
) -> tuple[list[int], int]:
    """Return the positions needed to prove ``targets`` and the count of
    positions that are computed rather than supplied."""
    proof: list[int] = []
    computed = 0
    current = list(targets)

    for row in range(forest_rows):
        computed += len(current)
        if (
            num_leaves & (1 << row)
            and current
            and current[-1] == root_position(num_leaves, row, forest_rows)
        ):
            current.pop()

        queue = deque(current)
        next_targets: list[int] = []
        while queue:
            n = len(queue)
            t0 = queue[0]
            if n > 3 and (t0 | 1) ^ 2 == queue[3] | 1:
                # first and fourth are cousins: all four are targets
                next_targets += [parent(t0, forest_rows), parent(queue[3], forest_rows)]
                for _ in range(4):
                    queue.popleft()
                continue
            if n > 2 and (t0 | 1) ^ 2 == queue[2] | 1:
                # second target is sibling of either first or third
                if queue[1] | 1 == t0 | 1:
                    proof.append(queue[2] ^ 1)
                else:
                    proof.append(t0 ^ 1)
                next_targets += [parent(t0, forest_rows), parent(queue[2], forest_rows)]
                for _ in range(3):
                    queue.popleft()
                continue
            if n > 1:
                t1 = queue[1]
                if t0 | 1 == t1:
                    next_targets.append(parent(t0, forest_rows))
                    queue.popleft()
                    queue.popleft()
                    continue
                if (t0 | 1) ^ 2 == t1 | 1:
                    proof += [t0 ^ 1, t1 ^ 1]
                    next_targets += [parent(t0, forest_rows), parent(t1, forest_rows)]
                    queue.popleft()
                    queue.popleft()
                    continue
            proof.append(t0 ^ 1)
            next_targets.append(parent(t0, forest_rows))
            queue.popleft()

        current = next_targets

    return proof, computed


def extract_twins(nodes: Sequence[int], forest_rows: int) -> tuple[list[int], list[int]]:
    """Split sorted deletions into parents of sibling pairs and lone deletions."""
    parents: list[int] = []
    dels: list[int] = []
    i = 0
    while i < len(nodes):
        if i + 1 < len(nodes) and nodes[i] | 1 == nodes[i + 1]:
            parents.append(parent(nodes[i], forest_rows))
            i += 2
        else:
            dels.append(nodes[i])
            i += 1
    return parents, dels


def detect_sub_tree_rows(position: int, num_leaves: int, forest_rows: int) -> int:
    """Return the row count of the subtree holding leaf ``position``."""
    h = forest_rows
    while position >= (1 << h) & num_leaves:
        position -= (1 << h) & num_leaves
        h -= 1
        if h < 0:
            raise ValueError(f"leaf {position} is not in a forest of {num_leaves} leaves")
    return h


def detect_row(position: int, forest_rows: int) -> int:
    """Return the row of ``position`` by counting its leading 1 bits."""
    marker = 1 << forest_rows
    row = 0
    while position & marker:
        row += 1
        marker >>= 1
    return row


def detect_offset(position: int, num_leaves: int) -> tuple[int, int, int]:
    """Return (trees to the left, height to tree top, inverted L/R bitfield)."""
    tr = tree_rows(num_leaves)
    nr = detect_row(position, tr)
    bigger_trees = 0
    while ((position << nr) & MASK64) & ((2 << tr) - 1) >= (1 << tr) & num_leaves:
        tree_size = (1 << tr) & num_leaves
        if tree_size:
            position = (position - tree_size) & MASK64
            bigger_trees += 1
        tr -= 1
        if tr < 0:
            raise ValueError(f"position is not in a forest of {num_leaves} leaves")
    return bigger_trees, (tr - nr) & 0xFF, ~position & MASK64


def child(position: int, forest_rows: int) -> int:
    """Return the left child of ``position``."""
    return (position << 1) & ((2 << forest_rows) - 1)


def child_many(position: int, drop: int, forest_rows: int) -> int:
    """Descend ``drop`` rows, always to the left."""
    if drop == 0:
        return position
    if drop > forest_rows:
        raise ValueError("child_many drop > forest_rows")
    return (position << drop) & ((2 << forest_rows) - 1)


def parent(position: int, forest_rows: int) -> int:
    """Return the parent of ``position``."""
    return (position >> 1) | (1 << forest_rows)


def parent_many(position: int, rise: int, forest_rows: int) -> int:
    """Ascend ``rise`` rows from ``position``."""
    if rise == 0:
        return position
    if rise > forest_rows:
        raise ValueError("parent_many rise > forest_rows")
    mask = (2 << forest_rows) - 1
    return ((position >> rise) | (mask << (forest_rows - (rise - 1)))) & mask


def cousin(position: int) -> int:
    """Return the child of the parent's sibling on the same side."""
    return position ^ 2


def in_forest(pos: int, num_leaves: int, forest_rows: int) -> bool:
    """Check whether ``pos`` lies inside a forest of ``num_leaves`` leaves."""
    if pos < num_leaves:
        return True
    marker = 1 << forest_rows
    mask = (marker << 1) - 1
    if pos >= mask:
        return False
    while pos & marker:
        pos = ((pos << 1) & mask) | 1
    return pos < num_leaves


def tree_rows(n: int) -> int:
    """Return the number of rows for a forest of ``n`` leaves."""
    if n <= 1:
        return 0
    rows = (n - 1).bit_length()
    # the next power of two overflows 64 bits: no rows, as with wrap-around
    return 0 if rows >= 64 else rows


def num_roots(n: int) -> int:
    """Return the number of trees (1 bits) in ``n``."""
    return bin(n & MASK64).count("1")


def root_position(leaves: int, row: int, forest_rows: int) -> int:
    """Return the position of the root at ``row``; does not check it exists."""
    mask = (2 << forest_rows) - 1
    before = leaves & (mask << (row + 1))
    shifted = (before >> row) | (mask << ((forest_rows + 1 - row) & 0xFF))
    return shifted & mask


def get_roots_forwards(leaves: int, forest_rows: int) -> tuple[list[int], list[int]]:
    """Return the root positions, left to right, and the row of each."""
    roots: list[int] = []
    rows: list[int] = []
    position = 0
    row = forest_rows
    while position < leaves:
        if (1 << row) & leaves:
            roots.append(parent_many(position, row, forest_rows))
            rows.append(row)
            position += 1 << row
        row -= 1
    return roots, rows


def sub_tree_positions(subroot: int, move_to: int, forest_rows: int) -> list[Arrow]:
    """Return arrows for every node of the subtree, bottom row first,
    moving it so that ``subroot`` lands on ``move_to``."""
    sub_row = detect_row(subroot, forest_rows)
    root_delta = move_to - subroot
    arrows: list[Arrow] = []
    for row in range(sub_row + 1):
        depth = sub_row - row
        leftmost = child_many(subroot, depth, forest_rows)
        row_delta = root_delta << depth
        for f in range(leftmost, leftmost + (1 << depth)):
            arrows.append(Arrow(f, (f + row_delta) & MASK64))
    return arrows


def sub_tree_leaf_range(subroot: int, forest_rows: int) -> tuple[int, int]:
    """Return the leftmost leaf under ``subroot`` and the number of leaves."""
    h = detect_row(subroot, forest_rows)
    return child_many(subroot, h, forest_rows), 1 << h


def check_sorted_no_dupes(values: Iterable[int]) -> bool:
    """True if ``values`` is strictly increasing."""
    return all(a < b for a, b in pairwise(values))


def merge_sorted(a: Sequence[int], b: Sequence[int]) -> list[int]:
    """Merge two sorted lists, collapsing values present in both."""
    if not a:
        return list(b)
    if not b:
        return list(a)
    merged: list[int] = []
    ia = ib = 0
    while ia < len(a) and ib < len(b):
        va, vb = a[ia], b[ib]
        if va < vb:
            merged.append(va)
            ia += 1
        elif va > vb:
            merged.append(vb)
            ib += 1
        else:
            merged.append(va)
            ia += 1
            ib += 1
    merged.extend(a[ia:])
    merged.extend(b[ib:])
    return merged


def dedupe_swap_dirt(a: Sequence[int], b: Sequence[Arrow]) -> list[int]:
    """Remove from sorted ``a`` every value that is a ``dst`` in sorted ``b``."""
    if not a or not b:
        return list(a)
    result: list[int] = []
    ib = 0
    for j, value in enumerate(a):
        while ib < len(b) and b[ib].dst < value:
            ib += 1
        if ib == len(b):
            result.extend(a[j:])
            break
        if value != b[ib].dst:
            result.append(value)
    return result


def bin_string(leaves: int) -> str:
    """Draw every position of a small forest in binary."""
    fh = tree_rows(leaves)
    if fh > 6:
        return "forest too big to print "

    output = [""] * (fh * 2 + 1)
    pos = 0
    for h in range(fh + 1):
        for _ in range(1 << (fh - h)):
            output[h * 2] += f"{pos:05b} "
            if h > 0:
                half = ((1 << h) - 1) // 2
                output[h * 2 - 1] += "|-----" + "------" * half + "\\     " + "      " * half
                output[h * 2] += "      " * ((1 << h) - 1)
            pos += 1
    return "".join(line + "\n" for line in reversed(output))