import os

from dotenv import load_dotenv
from flask import Flask, abort, jsonify, request, session
from werkzeug.exceptions import HTTPException

import game_store
from grid_codec import GridFormatError, coerce_grid, decode_grid, encode_grid
from nonogram import PUZZLES, NonogramGame
from sudoku_game import SavedGameError, SudokuGame
from sudoku_generator import (
    CELLS, DIFF_CLUES, count_solutions, is_valid_placement, is_valid_solution, solve,
)

load_dotenv()

app = Flask(__name__)
app.secret_key = os.getenv("FLASK_SECRET_KEY", "dev-secret")
app.config["DB_PATH"] = os.getenv(
    "SUDOKU_DB_PATH", os.path.join(os.path.dirname(__file__), "sudoku.db"))

DEFAULT_DIFFICULTY = os.getenv("DEFAULT_DIFFICULTY", "medium")
if DEFAULT_DIFFICULTY not in DIFF_CLUES:
    DEFAULT_DIFFICULTY = "medium"
MAX_COUNT_LIMIT = int(os.getenv("MAX_COUNT_LIMIT", "100"))

SUDOKU = "sudoku"
NONOGRAM = "nonogram"


@app.before_request
def startup():
    if app.config.get("_db_initialized") != app.config["DB_PATH"]:
        game_store.init_db(app.config["DB_PATH"])
        app.config["_db_initialized"] = app.config["DB_PATH"]


@app.errorhandler(HTTPException)
def http_error(e):
    return jsonify({"error": e.description}), e.code


# ---- Request helpers ----
def json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        abort(400, description="request body must be a JSON object")
    return data


def grid_from(obj):
    try:
        return coerce_grid(obj)
    except GridFormatError as e:
        abort(400, description=str(e))


def int_from(data: dict, name: str, lo: int, hi: int, default=None) -> int:
    v = data.get(name, default)
    if isinstance(v, bool) or not isinstance(v, int) or not lo <= v <= hi:
        abort(400, description=f"{name} must be an integer in [{lo}, {hi}]")
    return v


# ---- Sudoku persistence ----
def save_sudoku(game: SudokuGame) -> str:
    p = encode_grid(game.puzzle)
    game_store.save_progress(app.config["DB_PATH"], SUDOKU, p, game.to_payload())
    session["last_puzzle"] = p
    return p


def restore_sudoku(p: str):
    data = game_store.load_progress(app.config["DB_PATH"], SUDOKU, p)
    if data is None:
        return None
    try:
        return SudokuGame.from_payload(data, puzzle=decode_grid(p))
    except SavedGameError as e:
        app.logger.warning("dropping corrupted saved game %s: %s", p, e)
        game_store.clear_progress(app.config["DB_PATH"], SUDOKU, p)
        return None


def sudoku_json(game: SudokuGame, **extra):
    body = game.to_payload()
    body["p"] = encode_grid(game.puzzle)
    body["s"] = encode_grid(game.solution)
    body.update(extra)
    return jsonify(body)


def new_sudoku(level: str) -> SudokuGame:
    game = SudokuGame.new(level)
    app.logger.info("new %s puzzle with %d clues", level, sum(game.givens))
    return game


# ---- Sudoku game API ----
@app.route("/api/new_puzzle")
def api_new_puzzle():
    level = request.args.get("level", DEFAULT_DIFFICULTY).lower()
    if level not in DIFF_CLUES:
        level = DEFAULT_DIFFICULTY
    game = new_sudoku(level)
    save_sudoku(game)
    return sudoku_json(game, level=level, puzzle=game.puzzle)


@app.route("/api/sudoku/load")
def api_sudoku_load():
    try:
        puzzle = decode_grid(request.args.get("p", ""))
        solution = decode_grid(request.args.get("s", ""))
    except GridFormatError as e:
        abort(400, description=str(e))

    p = encode_grid(puzzle)
    game = restore_sudoku(p)
    if game is not None:
        return sudoku_json(game, restored=True)

    solved = solve(puzzle)
    if solved is None:
        app.logger.warning("shared puzzle %s is unsatisfiable, generating a new one", p)
        game = new_sudoku(DEFAULT_DIFFICULTY)
        save_sudoku(game)
        return sudoku_json(game, restored=False, regenerated=True)

    consistent = all(v == 0 or v == solution[i] for i, v in enumerate(puzzle))
    if not is_valid_solution(solution) or not consistent:
        solution = solved
    game = SudokuGame.from_puzzle(puzzle, solution, DEFAULT_DIFFICULTY)
    save_sudoku(game)
    return sudoku_json(game, restored=False)


@app.route("/api/sudoku/continue")
def api_sudoku_continue():
    db = app.config["DB_PATH"]
    for p in (session.get("last_puzzle"), game_store.last_key(db, SUDOKU)):
        if not p:
            continue
        game = restore_sudoku(p)
        if game is not None:
            return sudoku_json(game, restored=True)
    abort(404, description="No saved game found.")


def load_sudoku_or_404(p: str) -> SudokuGame:
    try:
        decode_grid(p)
    except GridFormatError as e:
        abort(400, description=str(e))
    game = restore_sudoku(p)
    if game is None:
        abort(404, description="No saved game found.")
    return game


@app.route("/api/sudoku/<p>/move", methods=["POST"])
def api_sudoku_move(p):
    game = load_sudoku_or_404(p)
    data = json_body()
    index = int_from(data, "index", 0, CELLS - 1)
    value = int_from(data, "value", 0, 9)
    accepted = game.set_value(index, value)
    save_sudoku(game)
    status = None
    if accepted and game.is_complete() and not game.completed:
        status = "Filled, but not correct yet."
    return sudoku_json(game, accepted=accepted, status=status)


@app.route("/api/sudoku/<p>/<action>", methods=["POST"])
def api_sudoku_action(p, action):
    game = load_sudoku_or_404(p)
    if action == "undo":
        game.undo()
    elif action == "redo":
        game.redo()
    elif action == "notes":
        game.toggle_notes()
    elif action == "pause":
        game.pause()
    elif action == "resume":
        game.resume()
    elif action == "tick":
        game.tick(int_from(json_body(), "ms", 0, 24 * 3600 * 1000))
    elif action == "reset":
        game.reset()
    elif action == "reveal":
        game.reveal()
    else:
        abort(404, description=f"Unknown action: {action}")
    save_sudoku(game)
    return sudoku_json(game)


@app.route("/api/sudoku/<p>/check")
def api_sudoku_check(p):
    game = load_sudoku_or_404(p)
    conflicts = game.conflicts()
    return jsonify({"conflicts": conflicts, "count": len(conflicts)})


# ---- Engine entry points ----
@app.route("/api/solve", methods=["POST"])
def api_solve():
    grid = grid_from(json_body().get("grid"))
    result = solve(grid)
    if result is None:
        abort(422, description="unsatisfiable")
    return jsonify({"solution": result, "s": encode_grid(result)})


@app.route("/api/count", methods=["POST"])
def api_count():
    data = json_body()
    grid = grid_from(data.get("grid"))
    limit = int_from(data, "limit", 1, MAX_COUNT_LIMIT, default=2)
    return jsonify({"count": count_solutions(grid, limit), "limit": limit})


@app.route("/api/validate_move", methods=["POST"])
def api_validate_move():
    data = json_body()
    grid = grid_from(data.get("grid"))
    index = int_from(data, "index", 0, CELLS - 1)
    value = int_from(data, "value", 0, 9)
    return jsonify({"valid": is_valid_placement(grid, index, value)})


# ---- Nonogram API ----
def load_nonogram(puzzle_id: str) -> NonogramGame:
    try:
        game = NonogramGame.start(puzzle_id)
    except KeyError:
        abort(404, description=f"Unknown puzzle: {puzzle_id}")
    data = game_store.load_progress(app.config["DB_PATH"], NONOGRAM, puzzle_id)
    if data is not None and not game.load_payload(data):
        app.logger.warning("ignoring incompatible saved nonogram %s", puzzle_id)
    return game


def nonogram_json(game: NonogramGame):
    body = game.to_payload()
    body.update({
        "id": game.puzzle_id,
        "size": game.size,
        "clues": game.clues(),
        "playerClues": game.player_clues(),
        "solved": game.is_solved(),
    })
    return jsonify(body)


@app.route("/api/nonogram/puzzles")
def api_nonogram_puzzles():
    return jsonify([{"id": p["id"], "name": p["name"], "size": p["size"]} for p in PUZZLES])


@app.route("/api/nonogram/<puzzle_id>")
def api_nonogram_get(puzzle_id):
    return nonogram_json(load_nonogram(puzzle_id))


@app.route("/api/nonogram/<puzzle_id>/stroke", methods=["POST"])
def api_nonogram_stroke(puzzle_id):
    game = load_nonogram(puzzle_id)
    data = json_body()
    indices = data.get("indices")
    n = game.size * game.size
    if (not isinstance(indices, list) or not indices
            or not all(isinstance(i, int) and not isinstance(i, bool) and 0 <= i < n
                       for i in indices)):
        abort(400, description=f"indices must be a non-empty list of integers in [0, {n - 1}]")
    tool = data.get("tool", game.tool)
    if tool not in ("fill", "mark"):
        abort(400, description="tool must be 'fill' or 'mark'")
    game.tool = tool
    game.stroke(indices)
    game_store.save_progress(app.config["DB_PATH"], NONOGRAM, puzzle_id, game.to_payload())
    return nonogram_json(game)


@app.route("/api/nonogram/<puzzle_id>/<action>", methods=["POST"])
def api_nonogram_action(puzzle_id, action):
    game = load_nonogram(puzzle_id)
    if action == "undo":
        game.undo()
    elif action == "redo":
        game.redo()
    elif action == "reset":
        game.reset()
    else:
        abort(404, description=f"Unknown action: {action}")
    game_store.save_progress(app.config["DB_PATH"], NONOGRAM, puzzle_id, game.to_payload())
    return nonogram_json(game)


@app.route("/api/nonogram/<puzzle_id>/check")
def api_nonogram_check(puzzle_id):
    return jsonify(load_nonogram(puzzle_id).check())


if __name__ == "__main__":
    app.run(debug=True)
