import random
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from grid_codec import GridFormatError, coerce_grid, mask_to_notes, notes_to_mask
from sudoku_generator import CELLS, Grid, generate_puzzle, is_valid_placement

PAYLOAD_VERSION = 3
HISTORY_LIMIT = 500


class SavedGameError(ValueError):
    pass


def _int_in(v: Any, lo: int, hi: int) -> bool:
    return isinstance(v, int) and not isinstance(v, bool) and lo <= v <= hi


def _valid_notes(notes: Any) -> bool:
    return isinstance(notes, list) and all(_int_in(n, 1, 9) for n in notes)


def _valid_action(action: Any) -> bool:
    return (isinstance(action, dict)
            and _int_in(action.get("i"), 0, CELLS - 1)
            and _int_in(action.get("prevVal"), 0, 9)
            and _int_in(action.get("nextVal"), 0, 9)
            and _valid_notes(action.get("prevNotes"))
            and _valid_notes(action.get("nextNotes")))


def _history(data: Dict[str, Any], name: str) -> List[Dict[str, Any]]:
    stack = data.get(name)
    if stack is None:
        return []
    if not isinstance(stack, list) or not all(_valid_action(a) for a in stack):
        raise SavedGameError(f"malformed {name}")
    return stack


@dataclass
class SudokuGame:
    """A player's grid on top of a carved puzzle, with notes and undo history."""

    puzzle: Grid
    solution: Grid
    values: Grid
    difficulty: str = "medium"
    notes: List[Set[int]] = field(default_factory=lambda: [set() for _ in range(CELLS)])
    undo_stack: List[Dict[str, Any]] = field(default_factory=list)
    redo_stack: List[Dict[str, Any]] = field(default_factory=list)
    notes_mode: bool = False
    paused: bool = False
    completed: bool = False
    elapsed_ms: int = 0
    selected: int = -1

    @classmethod
    def from_puzzle(cls, puzzle: Grid, solution: Grid, difficulty: str = "medium") -> "SudokuGame":
        return cls(puzzle=list(puzzle), solution=list(solution), values=list(puzzle),
                   difficulty=difficulty)

    @classmethod
    def new(cls, difficulty: str, rng: Optional[random.Random] = None) -> "SudokuGame":
        puzzle, solution = generate_puzzle(difficulty, rng)
        return cls.from_puzzle(puzzle, solution, difficulty)

    @property
    def givens(self) -> List[bool]:
        return [v != 0 for v in self.puzzle]

    @property
    def locked(self) -> bool:
        return self.paused or self.completed

    def is_complete(self) -> bool:
        return all(v != 0 for v in self.values)

    def is_solved(self) -> bool:
        return self.values == self.solution

    def _push(self, action: Dict[str, Any]) -> None:
        self.undo_stack.append(action)
        if len(self.undo_stack) > HISTORY_LIMIT:
            self.undo_stack.pop(0)
        self.redo_stack = []

    def _apply(self, action: Dict[str, Any], reverse: bool = False) -> None:
        i = action["i"]
        if reverse:
            self.values[i] = action["prevVal"]
            self.notes[i] = set(action["prevNotes"])
        else:
            self.values[i] = action["nextVal"]
            self.notes[i] = set(action["nextNotes"])

    def set_value(self, i: int, v: int) -> bool:
        """Enter ``v`` (or a pencil mark in notes mode) at ``i``.

        Returns False when the move was ignored because the game is locked or
        the cell is a given.
        """
        if self.locked or self.puzzle[i] != 0:
            return False

        prev_val = self.values[i]
        prev_notes = sorted(self.notes[i])

        if self.notes_mode:
            if v == 0:
                self.notes[i].clear()
            else:
                self.notes[i] ^= {v}
        else:
            if v == prev_val:
                v = 0
            self.values[i] = v
            if v != 0:
                self.notes[i].clear()

        self._push({"i": i, "prevVal": prev_val, "nextVal": self.values[i],
                    "prevNotes": prev_notes, "nextNotes": sorted(self.notes[i])})

        if not self.notes_mode and self.is_complete() and self.is_solved():
            self.completed = True
            self.paused = False
        return True

    def undo(self) -> bool:
        if self.locked or not self.undo_stack:
            return False
        action = self.undo_stack.pop()
        self._apply(action, reverse=True)
        self.redo_stack.append(action)
        return True

    def redo(self) -> bool:
        if self.locked or not self.redo_stack:
            return False
        action = self.redo_stack.pop()
        self._apply(action)
        self.undo_stack.append(action)
        return True

    def toggle_notes(self) -> bool:
        if not self.locked:
            self.notes_mode = not self.notes_mode
        return self.notes_mode

    def pause(self) -> None:
        # completed overrides pause
        if not self.completed:
            self.paused = True

    def resume(self) -> None:
        self.paused = False

    def tick(self, ms: int) -> None:
        if not self.locked:
            self.elapsed_ms += max(0, ms)

    def conflicts(self) -> List[int]:
        return [i for i, v in enumerate(self.values)
                if v != 0 and not is_valid_placement(self.values, i, v)]

    def reset(self) -> None:
        self.values = list(self.puzzle)
        self.notes = [set() for _ in range(CELLS)]
        self.undo_stack = []
        self.redo_stack = []
        self.selected = -1
        self.notes_mode = False
        self.paused = False
        self.completed = False
        self.elapsed_ms = 0

    def reveal(self) -> None:
        self.values = list(self.solution)
        self.notes = [set() for _ in range(CELLS)]
        self.undo_stack = []
        self.redo_stack = []
        self.selected = -1
        self.paused = False
        self.completed = True

    def to_payload(self) -> Dict[str, Any]:
        return {
            "v": PAYLOAD_VERSION,
            "savedAt": int(time.time() * 1000),
            "difficulty": self.difficulty,
            "notesMode": self.notes_mode,
            "paused": self.paused,
            "completed": self.completed,
            "elapsedMs": self.elapsed_ms,
            "givens": self.givens,
            "values": list(self.values),
            "solution": list(self.solution),
            "notesMasks": [notes_to_mask(n) for n in self.notes],
            "selected": self.selected,
            "undoStack": self.undo_stack,
            "redoStack": self.redo_stack,
        }

    @classmethod
    def from_payload(cls, data: Dict[str, Any], puzzle: Optional[Grid] = None) -> "SudokuGame":
        """Restore a saved game.

        The givens come from ``puzzle`` when supplied (the store key is the
        puzzle string) and from the payload's ``givens`` mask otherwise.
        """
        if not isinstance(data, dict) or data.get("v") != PAYLOAD_VERSION:
            raise SavedGameError("unsupported saved game version")
        try:
            values = coerce_grid(data.get("values"))
            solution = coerce_grid(data.get("solution"))
        except GridFormatError as e:
            raise SavedGameError(str(e)) from e

        if puzzle is None:
            givens = data.get("givens")
            if not isinstance(givens, list) or len(givens) != CELLS:
                raise SavedGameError("saved game has no givens")
            puzzle = [solution[i] if g else 0 for i, g in enumerate(givens)]

        masks = data.get("notesMasks")
        if masks is None:
            masks = [0] * CELLS
        if (not isinstance(masks, list) or len(masks) != CELLS
                or not all(_int_in(m, 0, 511) for m in masks)):
            raise SavedGameError("malformed notesMasks")
        undo_stack = _history(data, "undoStack")
        redo_stack = _history(data, "redoStack")
        completed = bool(data.get("completed"))
        elapsed = data.get("elapsedMs")
        selected = data.get("selected")
        return cls(
            puzzle=list(puzzle),
            solution=solution,
            values=values,
            difficulty=data.get("difficulty") or "medium",
            notes=[mask_to_notes(m) for m in masks],
            undo_stack=undo_stack,
            redo_stack=redo_stack,
            notes_mode=bool(data.get("notesMode")),
            paused=bool(data.get("paused")) and not completed,
            completed=completed,
            elapsed_ms=elapsed if isinstance(elapsed, int) else 0,
            selected=selected if isinstance(selected, int) else -1,
        )
