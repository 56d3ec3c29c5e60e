"""Source commands shipped with heats.

``heats-list-apps`` feeds the default launcher mode and ``heats-eval-calc``
backs the default calculator evaluator. Both speak the normal provider
protocol: JSON lines on stdout, exit status 0.
"""

from __future__ import annotations

import ast
import configparser
import json
import math
import operator
import os
import sys
from collections.abc import Callable, Iterable, Iterator
from pathlib import Path
from typing import TextIO

MAC_APP_DIRS = (
    Path("/Applications"),
    Path("/Applications/Utilities"),
    Path("/System/Applications"),
    Path("/System/Applications/Utilities"),
)
MAX_POWER_EXPONENT = 1000

_BINARY_OPS: dict[type[ast.operator], Callable[[float, float], float]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
    # "^" reads as power in a launcher, not xor.
    ast.BitXor: operator.pow,
}
_UNARY_OPS: dict[type[ast.unaryop], Callable[[float], float]] = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
}


def _evaluate_node(node: ast.AST) -> float:
    if isinstance(node, ast.Expression):
        return _evaluate_node(node.body)
    if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)) and not isinstance(node.value, bool):
        return float(node.value)
    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPS:
        return _UNARY_OPS[type(node.op)](_evaluate_node(node.operand))
    if isinstance(node, ast.BinOp) and type(node.op) in _BINARY_OPS:
        left = _evaluate_node(node.left)
        right = _evaluate_node(node.right)
        if isinstance(node.op, (ast.Pow, ast.BitXor)) and abs(right) > MAX_POWER_EXPONENT:
            raise ValueError("exponent too large")
        return _BINARY_OPS[type(node.op)](left, right)
    raise ValueError(f"unsupported expression element: {type(node).__name__}")


def evaluate_expression(text: str) -> float:
    """Evaluate plain arithmetic; raises ``ValueError`` for anything else."""
    try:
        tree = ast.parse(text.strip(), mode="eval")
    except SyntaxError as exc:
        raise ValueError(str(exc)) from exc
    try:
        value = _evaluate_node(tree)
    except (ArithmeticError, TypeError) as exc:
        raise ValueError(str(exc)) from exc
    if isinstance(value, complex) or math.isnan(value) or math.isinf(value):
        raise ValueError("result is not a finite number")
    return value


def format_number(value: float) -> str:
    if value.is_integer() and abs(value) < 2**63:
        return str(int(value))
    return repr(value)


def calc_item(query: str) -> dict[str, object] | None:
    """Build the result record for ``query``, or ``None`` when there is none.

    A query that already is its own result (``"42"``) yields nothing.
    """
    query = query.strip()
    if not query:
        return None
    try:
        formatted = format_number(evaluate_expression(query))
    except ValueError:
        return None
    if formatted == query:
        return None
    return {"title": f"= {formatted}", "subtitle": "Copy to clipboard", "data": formatted}


def eval_calc_main(stdin: TextIO | None = None, stdout: TextIO | None = None) -> None:
    stdin = stdin if stdin is not None else sys.stdin
    stdout = stdout if stdout is not None else sys.stdout
    item = calc_item(stdin.readline())
    if item is not None:
        stdout.write(json.dumps(item, ensure_ascii=False) + "\n")


def scan_mac_apps(dirs: Iterable[Path] = MAC_APP_DIRS) -> list[dict[str, object]]:
    """List ``.app`` bundles in ``dirs`` sorted by name."""
    records: list[dict[str, object]] = []
    for directory in dirs:
        try:
            entries = list(directory.iterdir())
        except OSError:
            continue
        for entry in entries:
            if entry.suffix != ".app":
                continue
            path = str(entry)
            records.append({"title": entry.stem, "subtitle": path, "icon_path": path, "data": {"path": path}})
    records.sort(key=lambda record: str(record["title"]))
    return records


def xdg_application_dirs() -> list[Path]:
    data_home = os.environ.get("XDG_DATA_HOME") or str(Path.home() / ".local" / "share")
    data_dirs = os.environ.get("XDG_DATA_DIRS") or "/usr/local/share:/usr/share"
    return [Path(base) / "applications" for base in [data_home, *data_dirs.split(":")] if base]


def _iter_desktop_files(dirs: Iterable[Path]) -> Iterator[tuple[str, Path]]:
    for directory in dirs:
        if not directory.is_dir():
            continue
        for path in sorted(directory.rglob("*.desktop")):
            desktop_id = str(path.relative_to(directory).with_suffix("")).replace(os.sep, "-")
            yield desktop_id, path


def read_desktop_entry(desktop_id: str, path: Path) -> dict[str, object] | None:
    """Parse one ``.desktop`` file into a record; hidden entries give ``None``."""
    parser = configparser.ConfigParser(interpolation=None, strict=False)
    parser.optionxform = str  # type: ignore[assignment,method-assign]
    try:
        parser.read(path, encoding="utf-8")
    except (configparser.Error, OSError, UnicodeDecodeError):
        return None
    if not parser.has_section("Desktop Entry"):
        return None
    entry = parser["Desktop Entry"]
    if entry.get("Type", "Application") != "Application":
        return None
    if entry.get("NoDisplay", "false").lower() == "true" or entry.get("Hidden", "false").lower() == "true":
        return None
    name = entry.get("Name", "").strip()
    if not name:
        return None
    record: dict[str, object] = {
        "title": name,
        "subtitle": entry.get("Comment", "").strip() or str(path),
        "data": {"id": desktop_id, "path": str(path)},
    }
    icon = entry.get("Icon", "").strip()
    if icon:
        record["icon_path"] = icon
    return record


def scan_desktop_entries(dirs: Iterable[Path] | None = None) -> list[dict[str, object]]:
    """List XDG applications; earlier directories shadow later ones by id."""
    seen: set[str] = set()
    records: list[dict[str, object]] = []
    for desktop_id, path in _iter_desktop_files(dirs if dirs is not None else xdg_application_dirs()):
        if desktop_id in seen:
            continue
        seen.add(desktop_id)
        record = read_desktop_entry(desktop_id, path)
        if record is not None:
            records.append(record)
    records.sort(key=lambda record: str(record["title"]).casefold())
    return records


def list_apps_main(stdout: TextIO | None = None) -> None:
    stdout = stdout if stdout is not None else sys.stdout
    records = scan_mac_apps() if sys.platform == "darwin" else scan_desktop_entries()
    for record in records:
        stdout.write(json.dumps(record, ensure_ascii=False) + "\n")
