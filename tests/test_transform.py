import pytest

from utreexo.accumulator.transform import (
    floor_transform,
    make_collapse,
    make_swap_next_dels,
    make_swaps,
    remove_transform,
    swap_collapses,
    swap_if_descendant,
)
from utreexo.accumulator.utils import Arrow, extract_twins, root_position


def _apply_leaf_swaps(num_positions, floor):
    leaves = list(range(num_positions))
    for arrow in floor:
        leaves[arrow.src], leaves[arrow.dst] = leaves[arrow.dst], leaves[arrow.src]
    return leaves


def test_ex_twin():
    assert root_position(15, 0, 4) == 14
    parents, dels = extract_twins([0, 1, 2, 3, 9], 4)
    assert parents == [16, 17]
    assert dels == [9]


def test_get_top():
    assert root_position(11, 1, 4) == 20


def test_remove_single_leaf_of_four():
    assert remove_transform([0], 4, 2) == [
        [Arrow(1, 0, collapse=True)],
        [Arrow(5, 4, collapse=True)],
    ]


def test_remove_twins():
    assert remove_transform([0, 1], 4, 2) == [[], [Arrow(5, 4, collapse=True)]]


def test_remove_root_only():
    assert remove_transform([2], 3, 2) == [[], []]


def test_remove_nothing():
    assert remove_transform([], 4, 2) == [[], []]


def test_root_fills_leftover_deletion():
    assert remove_transform([0], 3, 2) == [[Arrow(2, 0)], []]


def test_remove_two_in_eight():
    assert remove_transform([1, 2], 8, 3) == [
        [Arrow(3, 1)],
        [],
        [Arrow(13, 12, collapse=True)],
    ]


def test_floor_transform_single_leaf():
    assert floor_transform([0], 4, 2) == [
        Arrow(1, 0, collapse=True),
        Arrow(2, 0),
        Arrow(3, 1),
    ]


def test_floor_transform_two_in_eight():
    assert floor_transform([1, 2], 8, 3) == [
        Arrow(3, 1),
        Arrow(4, 0),
        Arrow(5, 1),
        Arrow(6, 2),
        Arrow(7, 3),
    ]


@pytest.mark.parametrize(
    "dels, num_leaves, forest_rows",
    [([0], 4, 2), ([1, 2], 8, 3), ([0, 1], 4, 2)],
)
def test_floor_transform_keeps_survivors_on_the_left(dels, num_leaves, forest_rows):
    floor = floor_transform(dels, num_leaves, forest_rows)
    leaves = _apply_leaf_swaps(1 << forest_rows, floor)
    remaining = num_leaves - len(dels)
    assert sorted(leaves[:remaining]) == sorted(set(range(num_leaves)) - set(dels))


def test_floor_transform_drops_still_arrows():
    assert all(a.src != a.dst for a in floor_transform([1, 2], 8, 3))


def test_make_collapse_sibling_promoted():
    assert make_collapse([0], True, False, 0, 4, 3, 2) == Arrow(1, 2, collapse=True)


def test_make_collapse_root_moves():
    assert make_collapse([], False, True, 0, 15, 9, 4) == Arrow(14, 8, collapse=True)


def test_make_collapse_none():
    assert make_collapse([0], True, True, 0, 3, 2, 2) is None


def test_make_swaps_pairs_and_root():
    assert make_swaps([4, 7], False, False, 0) == [Arrow(6, 4)]
    assert make_swaps([0], True, True, 2) == [Arrow(2, 0)]


def test_make_swap_next_dels():
    assert make_swap_next_dels([4, 7, 9], True, False, 4) == [19, 20]
    assert make_swap_next_dels([4, 7, 9], True, True, 4) == [19]


def test_swap_if_descendant():
    assert swap_if_descendant(Arrow(5, 4), Arrow(1, 2), 1, 0, 2) == 2
    assert swap_if_descendant(Arrow(5, 5), Arrow(1, 2), 1, 0, 2) == 0


def test_swap_collapses_adjusts_lower_collapse():
    swaps = [[], []]
    collapses = [Arrow(1, 2, collapse=True), Arrow(5, 4, collapse=True)]
    swap_collapses(swaps, collapses, 2)
    assert collapses[0] == Arrow(1, 0, collapse=True)
    assert collapses[1] == Arrow(5, 4, collapse=True)