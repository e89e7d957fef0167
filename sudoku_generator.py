import logging
import random
from functools import lru_cache
from typing import List, Optional, Tuple

logger = logging.getLogger(__name__)

Grid = List[int]

SIZE = 9
CELLS = SIZE * SIZE
SEED_PLACEMENTS = 11

# closed clue-count ranges per difficulty tier
DIFF_CLUES = {
    "easy": (38, 45),
    "medium": (32, 37),
    "hard": (26, 31),
    "expert": (22, 25),
}


def index_to_rc(i: int) -> Tuple[int, int]:
    return i // SIZE, i % SIZE


def rc_to_index(r: int, c: int) -> int:
    return r * SIZE + c


@lru_cache(maxsize=None)
def peers_of(i: int) -> Tuple[int, ...]:
    """Indices sharing a row, column or box with ``i``, excluding ``i``."""
    r, c = index_to_rc(i)
    ps = set()
    for k in range(SIZE):
        ps.add(rc_to_index(r, k))
        ps.add(rc_to_index(k, c))
    br, bc = 3*(r//3), 3*(c//3)
    for rr in range(br, br+3):
        for cc in range(bc, bc+3):
            ps.add(rc_to_index(rr, cc))
    ps.discard(i)
    return tuple(sorted(ps))


def is_valid_placement(grid: Grid, i: int, v: int) -> bool:
    if v == 0:
        return True
    return not any(grid[p] == v for p in peers_of(i))


def is_valid_solution(grid: Grid) -> bool:
    if len(grid) != CELLS or any(v == 0 for v in grid):
        return False
    return all(is_valid_placement(grid, i, grid[i]) for i in range(CELLS))


def count_clues(grid: Grid) -> int:
    return sum(1 for v in grid if v != 0)


def candidates_for(grid: Grid, i: int) -> List[int]:
    if grid[i] != 0:
        return []
    used = {grid[p] for p in peers_of(i)}
    return [v for v in range(1, 10) if v not in used]


def _givens_consistent(grid: Grid) -> bool:
    return all(is_valid_placement(grid, i, v) for i, v in enumerate(grid) if v)


def _pick_cell(grid: Grid) -> Tuple[int, List[int]]:
    """MRV choice: (-1, []) when the grid is full, (i, []) on a dead end."""
    best, best_cands = -1, None
    for i in range(CELLS):
        if grid[i] != 0:
            continue
        cands = candidates_for(grid, i)
        if not cands:
            return i, []
        if best_cands is None or len(cands) < len(best_cands):
            best, best_cands = i, cands
            if len(cands) == 1:
                break
    return best, best_cands or []


def _backtrack(grid: Grid, rng: Optional[random.Random]) -> bool:
    i, cands = _pick_cell(grid)
    if i == -1:
        return True
    if not cands:
        return False
    if rng is not None:
        rng.shuffle(cands)
    for v in cands:
        grid[i] = v
        if _backtrack(grid, rng):
            return True
        grid[i] = 0
    return False


def solve(grid: Grid, rng: Optional[random.Random] = None) -> Optional[Grid]:
    """Complete ``grid`` with MRV backtracking.

    Candidates are tried in ascending order unless ``rng`` is given, in which
    case each branch is shuffled with it. Returns a new grid, or None when the
    givens already conflict or no completion exists. The input is not touched.
    """
    if not _givens_consistent(grid):
        return None
    work = list(grid)
    if not _backtrack(work, rng):
        return None
    return work


def count_solutions(grid: Grid, limit: int = 2) -> int:
    if not _givens_consistent(grid):
        return 0
    work = list(grid)
    count = 0

    def bt() -> None:
        nonlocal count
        if count >= limit:
            return
        i, cands = _pick_cell(work)
        if i == -1:
            count += 1
            return
        for v in cands:
            work[i] = v
            bt()
            work[i] = 0
            if count >= limit:
                return

    bt()
    return count


def generate_full_solution(rng: Optional[random.Random] = None) -> Grid:
    rng = rng or random.Random()
    grid = [0] * CELLS
    for _ in range(SEED_PLACEMENTS):
        i = rng.randrange(CELLS)
        if grid[i] != 0:
            continue
        cands = candidates_for(grid, i)
        if not cands:
            continue
        grid[i] = rng.choice(cands)
        if solve(grid) is None:
            grid[i] = 0
    solution = solve(grid, rng)
    if solution is None:
        logger.warning("seeded grid unsolvable, solving from empty grid")
        solution = solve([0] * CELLS, rng)
    return solution


def make_puzzle_from_solution(solution: Grid, difficulty: str,
                              rng: Optional[random.Random] = None) -> Grid:
    if difficulty not in DIFF_CLUES:
        raise ValueError(f"unknown difficulty: {difficulty!r}")
    rng = rng or random.Random()
    lo, hi = DIFF_CLUES[difficulty]
    target = rng.randint(lo, hi)

    puzzle = list(solution)
    cells = list(range(CELLS))
    rng.shuffle(cells)

    clues = CELLS
    for i in cells:
        backup = puzzle[i]
        puzzle[i] = 0
        if count_solutions(puzzle, 2) != 1:
            puzzle[i] = backup
        else:
            clues -= 1
        if clues <= target:
            break

    # top up only when over-carved; a stalled carve keeps its extra clues
    while clues < target:
        i = rng.randrange(CELLS)
        if puzzle[i] == 0:
            puzzle[i] = solution[i]
            clues += 1

    logger.debug("carved %s puzzle: target=%d clues=%d", difficulty, target, clues)
    return puzzle


def generate_puzzle(difficulty: str = "easy",
                    rng: Optional[random.Random] = None) -> Tuple[Grid, Grid]:
    rng = rng or random.Random()
    solution = generate_full_solution(rng)
    puzzle = make_puzzle_from_solution(solution, difficulty, rng)
    return puzzle, solution
