import logging
import random

import pytest

import sudoku_generator
from sudoku_generator import (
    CELLS, DIFF_CLUES, candidates_for, count_clues, count_solutions,
    generate_full_solution, generate_puzzle, index_to_rc, is_valid_placement,
    is_valid_solution, make_puzzle_from_solution, peers_of, rc_to_index, solve,
)


def units(grid):
    rows = [grid[r*9:(r+1)*9] for r in range(9)]
    cols = [grid[c::9] for c in range(9)]
    boxes = [[grid[rc_to_index(br + dr, bc + dc)] for dr in range(3) for dc in range(3)]
             for br in (0, 3, 6) for bc in (0, 3, 6)]
    return rows + cols + boxes


def assert_full_valid(grid):
    assert len(grid) == CELLS
    for unit in units(grid):
        assert sorted(unit) == list(range(1, 10))


# ---- Grid model ----
def test_index_rc_roundtrip():
    for i in range(CELLS):
        r, c = index_to_rc(i)
        assert 0 <= r < 9 and 0 <= c < 9
        assert rc_to_index(r, c) == i
    assert index_to_rc(40) == (4, 4)
    assert index_to_rc(80) == (8, 8)


def test_peers_of_has_twenty_unique_peers():
    for i in range(CELLS):
        peers = peers_of(i)
        assert len(peers) == 20
        assert len(set(peers)) == 20
        assert i not in peers


def test_peers_of_corner():
    peers = set(peers_of(0))
    assert set(range(1, 9)) <= peers
    assert {9, 18, 27, 36, 45, 54, 63, 72} <= peers
    assert {10, 11, 19, 20} <= peers
    assert 80 not in peers


def test_clearing_is_always_valid(solution):
    for i in range(CELLS):
        assert is_valid_placement(solution, i, 0)


def test_placement_ignores_self(solution):
    for i in range(CELLS):
        assert is_valid_placement(solution, i, solution[i])


def test_placement_detects_peer_conflict(puzzle):
    # row 0 already holds 5 and 3, column 2 holds 8, box 0 holds 9
    assert not is_valid_placement(puzzle, 2, 5)
    assert not is_valid_placement(puzzle, 2, 8)
    assert not is_valid_placement(puzzle, 2, 9)
    assert is_valid_placement(puzzle, 2, 4)


def test_is_valid_solution(solution, puzzle):
    assert is_valid_solution(solution)
    assert not is_valid_solution(puzzle)
    broken = list(solution)
    broken[0], broken[1] = broken[1], broken[0]
    assert not is_valid_solution(broken)


# ---- Candidates ----
def test_candidates_for_filled_cell_is_empty(puzzle):
    assert candidates_for(puzzle, 0) == []


def test_candidates_for_empty_cell(puzzle):
    assert candidates_for(puzzle, 2) == [1, 2, 4]
    assert candidates_for([0] * CELLS, 0) == list(range(1, 10))


# ---- Solver ----
def test_solve_known_puzzle(puzzle, solution):
    assert solve(puzzle) == solution


def test_solve_does_not_mutate_input(puzzle):
    before = list(puzzle)
    solve(puzzle)
    assert puzzle == before


def test_solve_is_deterministic_without_rng():
    partial = [0] * CELLS
    partial[0] = 5
    partial[40] = 3
    first = solve(partial)
    assert first is not None
    assert_full_valid(first)
    assert solve(partial) == first


def test_solve_complete_grid_returns_copy(solution):
    result = solve(solution)
    assert result == solution
    assert result is not solution


def test_solve_complete_invalid_grid_fails(solution):
    broken = list(solution)
    broken[0], broken[1] = broken[1], broken[0]
    assert solve(broken) is None


def test_solve_contradictory_givens(puzzle):
    puzzle[2] = 5
    assert solve(puzzle) is None


def test_solve_unsatisfiable_without_direct_conflict():
    grid = [0] * CELLS
    # row 0 leaves only 9 for cell 8, but column 8 already has 9
    for c, v in enumerate([1, 2, 3, 4, 5, 6, 7, 8]):
        grid[c] = v
    grid[rc_to_index(5, 8)] = 9
    assert solve(grid) is None
    assert count_solutions(grid, 2) == 0


def test_solve_with_rng_is_valid(rng):
    result = solve([0] * CELLS, rng)
    assert_full_valid(result)


# ---- Counter ----
def test_count_unique_puzzle(puzzle):
    assert count_solutions(puzzle, 2) == 1


def test_count_stops_at_limit():
    assert count_solutions([0] * CELLS, 2) == 2
    assert count_solutions([0] * CELLS, 5) == 5


def test_count_does_not_mutate_input(puzzle):
    before = list(puzzle)
    count_solutions(puzzle, 2)
    assert puzzle == before


def test_count_full_grid(solution):
    assert count_solutions(solution, 2) == 1


def test_single_cleared_cell_matches_brute_force(solution):
    for i in (0, 17, 40, 63, 80):
        p = list(solution)
        p[i] = 0
        legal = [v for v in range(1, 10) if is_valid_placement(p, i, v)]
        assert (count_solutions(p, 2) == 1) == (len(legal) == 1)


# ---- Generator ----
def test_generate_full_solution_is_valid(rng):
    for _ in range(3):
        assert_full_valid(generate_full_solution(rng))


def test_generate_full_solution_reproducible_with_seed():
    a = generate_full_solution(random.Random(7))
    b = generate_full_solution(random.Random(7))
    assert a == b


def test_generate_full_solution_varies(rng):
    assert generate_full_solution(rng) != generate_full_solution(rng)


# ---- Carver ----
@pytest.mark.parametrize("difficulty", sorted(DIFF_CLUES))
def test_carved_puzzle_is_unique(difficulty, rng):
    sol = generate_full_solution(rng)
    puz = make_puzzle_from_solution(sol, difficulty, rng)
    lo, hi = DIFF_CLUES[difficulty]
    assert count_clues(puz) >= lo
    assert count_solutions(puz, 2) == 1
    assert solve(puz) == sol
    assert all(v == 0 or v == sol[i] for i, v in enumerate(puz))
    if difficulty != "expert":
        assert count_clues(puz) <= hi


def test_carver_does_not_mutate_solution(solution, rng):
    before = list(solution)
    make_puzzle_from_solution(solution, "easy", rng)
    assert solution == before


def test_carver_rejects_unknown_difficulty(solution):
    with pytest.raises(ValueError):
        make_puzzle_from_solution(solution, "impossible")


def test_end_to_end_expert():
    rng = random.Random(2024)
    sol = generate_full_solution(rng)
    puz = make_puzzle_from_solution(sol, "expert", rng)
    # a stalled carve may keep a few clues above the expert ceiling
    assert 22 <= count_clues(puz) <= 31
    assert count_solutions(puz, 2) == 1
    assert solve(puz) == sol


def test_generate_puzzle_pair(rng):
    puz, sol = generate_puzzle("medium", rng)
    assert_full_valid(sol)
    assert 32 <= count_clues(puz) <= 37
    assert solve(puz) == sol


def test_generate_full_solution_falls_back_to_empty_grid(monkeypatch, caplog, rng):
    real_solve = sudoku_generator.solve
    calls = []

    def failing_seeded_solve(grid, rng=None):
        seeded = rng is not None and any(grid)
        calls.append(seeded)
        if seeded:
            return None
        return real_solve(grid, rng)

    monkeypatch.setattr(sudoku_generator, "solve", failing_seeded_solve)
    with caplog.at_level(logging.WARNING, logger="sudoku_generator"):
        result = generate_full_solution(rng)
    assert_full_valid(result)
    assert calls[-2:] == [True, False]
    assert "solving from empty grid" in caplog.text


def test_carver_tops_up_to_target(monkeypatch, solution, rng):
    # the scan clears one cell before it stops, leaving one clue to restore
    monkeypatch.setitem(sudoku_generator.DIFF_CLUES, "full", (81, 81))
    puz = make_puzzle_from_solution(solution, "full", rng)
    assert count_clues(puz) == 81
    assert puz == solution
