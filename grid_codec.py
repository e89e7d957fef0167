from typing import Iterable, List, Set, Union

from sudoku_generator import CELLS, Grid


class GridFormatError(ValueError):
    pass


def encode_grid(grid: Grid) -> str:
    return "".join(str(v) for v in grid)


def decode_grid(text: str) -> Grid:
    """Parse an 81-character share string (``0`` for empty cells)."""
    if not text or len(text) != CELLS:
        raise GridFormatError("grid must be exactly 81 characters")
    if not all("0" <= ch <= "9" for ch in text):
        raise GridFormatError("grid may only contain the digits 0-9")
    return [ord(ch) - 48 for ch in text]


def coerce_grid(obj: Union[str, List[int], None]) -> Grid:
    if isinstance(obj, str):
        return decode_grid(obj)
    if not isinstance(obj, list) or len(obj) != CELLS:
        raise GridFormatError("grid must be an 81-character string or 81-item list")
    for v in obj:
        # bool is an int subclass but never a cell value
        if isinstance(v, bool) or not isinstance(v, int) or not 0 <= v <= 9:
            raise GridFormatError("grid values must be integers 0-9")
    return list(obj)


def notes_to_mask(notes: Iterable[int]) -> int:
    mask = 0
    for n in notes:
        mask |= 1 << (n - 1)
    return mask


def mask_to_notes(mask: int) -> Set[int]:
    return {n for n in range(1, 10) if mask & (1 << (n - 1))}
