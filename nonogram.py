from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

EMPTY, FILLED, MARKED = 0, 1, 2
CELL_STATES = (EMPTY, FILLED, MARKED)
PAYLOAD_VERSION = 2
HISTORY_LIMIT = 300

# solutions as rows of "#" (filled) and "." (blank)
PUZZLES = [
    {
        "id": "plus-5",
        "name": "Starter: Plus (5x5)",
        "size": 5,
        "rows": [
            ".###.",
            "#.#.#",
            "#####",
            "#.#.#",
            ".###.",
        ],
    },
    {
        "id": "heart-10",
        "name": "Heart (10x10)",
        "size": 10,
        "rows": [
            "..##..##..",
            ".####.####",
            "##########",
            "##########",
            ".########.",
            "..######..",
            "...####...",
            "....##....",
            "..........",
            "..........",
        ],
    },
    {
        "id": "smile-15",
        "name": "Smiley (15x15)",
        "size": 15,
        "rows": [
            "...............",
            "...####...####.",
            "..######.######",
            "..######.######",
            "...####...####.",
            "...............",
            ".##.........##.",
            ".##.........##.",
            "...............",
            "...#########...",
            "....#######....",
            ".....#####.....",
            "......###......",
            ".......#.......",
            "...............",
        ],
    },
]


def _is_state(v: Any) -> bool:
    return not isinstance(v, bool) and v in CELL_STATES


def _valid_step(step: Any, n: int) -> bool:
    return isinstance(step, list) and all(
        isinstance(c, dict)
        and isinstance(c.get("i"), int) and not isinstance(c.get("i"), bool)
        and 0 <= c["i"] < n
        and _is_state(c.get("from")) and _is_state(c.get("to"))
        for c in step)


def find_puzzle(puzzle_id: str) -> Optional[Dict[str, Any]]:
    return next((p for p in PUZZLES if p["id"] == puzzle_id), None)


def parse_rows(rows: Sequence[str]) -> List[int]:
    return [1 if ch == "#" else 0 for row in rows for ch in row]


def line_clues(bits: Sequence[int]) -> List[int]:
    clues = []
    run = 0
    for b in bits:
        if b == 1:
            run += 1
        elif run:
            clues.append(run)
            run = 0
    if run:
        clues.append(run)
    return clues or [0]


def row_clues(cells: Sequence[int], size: int) -> List[List[int]]:
    return [line_clues(cells[r*size:(r+1)*size]) for r in range(size)]


def col_clues(cells: Sequence[int], size: int) -> List[List[int]]:
    return [line_clues(cells[c::size]) for c in range(size)]


@dataclass
class NonogramGame:
    puzzle_id: str
    size: int
    solution: List[int]
    state: List[int] = field(default_factory=list)
    undo_stack: List[List[Dict[str, int]]] = field(default_factory=list)
    redo_stack: List[List[Dict[str, int]]] = field(default_factory=list)
    tool: str = "fill"

    def __post_init__(self):
        if not self.state:
            self.state = [EMPTY] * (self.size * self.size)

    @classmethod
    def start(cls, puzzle_id: str) -> "NonogramGame":
        puz = find_puzzle(puzzle_id)
        if puz is None:
            raise KeyError(puzzle_id)
        return cls(puzzle_id=puz["id"], size=puz["size"], solution=parse_rows(puz["rows"]))

    @property
    def filled(self) -> List[int]:
        return [1 if v == FILLED else 0 for v in self.state]

    def clues(self) -> Dict[str, List[List[int]]]:
        return {"rows": row_clues(self.solution, self.size),
                "cols": col_clues(self.solution, self.size)}

    def player_clues(self) -> Dict[str, List[List[int]]]:
        # marks count as empty
        filled = self.filled
        return {"rows": row_clues(filled, self.size),
                "cols": col_clues(filled, self.size)}

    def stroke(self, indices: Sequence[int], tool: Optional[str] = None) -> bool:
        """Paint ``indices`` as one undoable step.

        The first cell decides the target: fill toggles filled/empty and mark
        toggles marked/empty. Returns False when nothing changed.
        """
        if not indices:
            return False
        tool = tool or self.tool
        first = self.state[indices[0]]
        if tool == "fill":
            paint_to = EMPTY if first == FILLED else FILLED
        else:
            paint_to = EMPTY if first == MARKED else MARKED

        changes: Dict[int, Dict[str, int]] = {}
        for i in indices:
            frm = self.state[i]
            if frm == paint_to:
                continue
            self.state[i] = paint_to
            if i in changes:
                changes[i]["to"] = paint_to
            else:
                changes[i] = {"i": i, "from": frm, "to": paint_to}
        if not changes:
            return False

        self.undo_stack.append(list(changes.values()))
        if len(self.undo_stack) > HISTORY_LIMIT:
            self.undo_stack.pop(0)
        self.redo_stack = []
        return True

    def undo(self) -> bool:
        if not self.undo_stack:
            return False
        step = self.undo_stack.pop()
        for change in step:
            self.state[change["i"]] = change["from"]
        self.redo_stack.append(step)
        return True

    def redo(self) -> bool:
        if not self.redo_stack:
            return False
        step = self.redo_stack.pop()
        for change in step:
            self.state[change["i"]] = change["to"]
        self.undo_stack.append(step)
        return True

    def is_solved(self) -> bool:
        return self.filled == self.solution

    def check(self) -> Dict[str, Any]:
        filled = self.filled
        wrong = sum(1 for a, b in zip(filled, self.solution) if a != b)
        bad = [i for i, (a, b) in enumerate(zip(filled, self.solution)) if a and not b]
        return {"wrong": wrong, "bad": bad, "solved": wrong == 0}

    def reset(self) -> None:
        self.state = [EMPTY] * (self.size * self.size)
        self.undo_stack = []
        self.redo_stack = []

    def to_payload(self) -> Dict[str, Any]:
        return {"v": PAYLOAD_VERSION, "state": list(self.state),
                "undoStack": self.undo_stack, "redoStack": self.redo_stack,
                "tool": self.tool}

    def load_payload(self, data: Dict[str, Any]) -> bool:
        """Apply saved progress; a payload from another version or size is ignored."""
        if not isinstance(data, dict) or data.get("v") != PAYLOAD_VERSION:
            return False
        state = data.get("state")
        n = self.size * self.size
        if not isinstance(state, list) or len(state) != n:
            return False
        if not all(_is_state(v) for v in state):
            return False
        undo_stack = data.get("undoStack") or []
        redo_stack = data.get("redoStack") or []
        for stack in (undo_stack, redo_stack):
            if not isinstance(stack, list) or not all(_valid_step(s, n) for s in stack):
                return False
        self.state = list(state)
        self.undo_stack = undo_stack
        self.redo_stack = redo_stack
        self.tool = "mark" if data.get("tool") == "mark" else "fill"
        return True
