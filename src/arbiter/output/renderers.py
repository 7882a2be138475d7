"""Operation-specific Rich renderers for ServiceResult.

Each renderer writes to a Rich Console (backed by StringIO).  The caller
extracts the rendered text via ``get_output(console)``.

Renderers are dispatched by ``result.op`` in :func:`render_result`.
Unknown ops fall through to a generic key-value renderer.  A few ops also
have failure renderers, because their partial data matters most when
something went wrong.
"""

from __future__ import annotations

import json as _json
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from rich.table import Table
from rich.text import Text

from arbiter.output.console import create_console, get_output, style_for_kind

if TYPE_CHECKING:
    from rich.console import Console

    from arbiter.services.result import ServiceResult

Renderer = Callable[..., None]

# ── Public API ────────────────────────────────────────────────────────


def render_result(result: ServiceResult, *, verbose: bool = False) -> str:
    """Render a ServiceResult to a styled string via Rich."""
    console = create_console()

    if result.ok:
        renderer = _OP_RENDERERS.get(result.op, _render_generic)
    else:
        renderer = _ERROR_RENDERERS.get(result.op, _render_error)
    renderer(result, console, verbose=verbose)

    return get_output(console).rstrip("\n")


def render_quiet(result: ServiceResult) -> str:
    """Render minimal output for ``--quiet`` mode."""
    if not result.ok:
        msg = result.error.message if result.error else "Unknown error"
        return f"ERROR: {result.op}: {msg}"

    items = result.data.get("items")
    if items and isinstance(items, list):
        return "\n".join(_extract_name(item) for item in items if _extract_name(item))

    return f"OK: {result.op}"


# ── Helpers ───────────────────────────────────────────────────────────


def _extract_name(item: Any) -> str:
    if isinstance(item, dict):
        for key in ("name", "id"):
            val = item.get(key)
            if val is not None:
                return str(val)
    return ""


def _status_line(console: Console, result: ServiceResult) -> None:
    label = Text("OK", style="arb.ok")
    op = Text(f"  {result.op}", style="arb.op")
    console.print(label, op, end="")
    console.print()


def _field(console: Console, key: str, value: Any) -> None:
    """Print a single indented key-value field."""
    k = Text(f"  {key}: ", style="arb.key")
    if key == "id" or key.endswith("_id"):
        v = Text(str(value), style="arb.id")
    elif key == "command":
        v = Text(str(value), style="arb.command")
    else:
        v = Text(str(value))
    console.print(k, v, end="")
    console.print()


def _render_meta(console: Console, result: ServiceResult) -> None:
    if not result.meta:
        return
    console.print()
    console.print(Text("  meta:", style="dim"))
    for k, v in result.meta.items():
        console.print(f"    {k}: {v}")


def _render_error(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    err = result.error
    msg = err.message if err else "Unknown error"
    label = Text("ERROR", style="arb.error")
    op = Text(f"  {result.op}", style="arb.op")
    console.print(label, op, Text(f": {msg}"), sep="")

    if verbose and err and err.detail:
        console.print(Text("  detail:", style="dim"))
        for k, v in err.detail.items():
            console.print(f"    {k}: {v}", markup=False)


# ── World renderers ───────────────────────────────────────────────────


def _database_table(database: dict[str, Any]) -> Table:
    table = Table(show_header=True, header_style="bold", box=None, pad_edge=False)
    table.add_column("Location", style="arb.id")
    table.add_column("State")
    for location, state in database.items():
        table.add_row(location, _json.dumps(state) if not isinstance(state, str) else state)
    return table


def _render_world_summary(console: Console, summary: dict[str, Any], *, verbose: bool) -> None:
    _field(console, "world_id", summary["world_id"])
    _field(console, "agents", ", ".join(summary["agents"]) or "-")
    _field(console, "database_size", summary["database_size"])
    if verbose and summary["database"]:
        console.print(_database_table(summary["database"]))


def _render_world(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render run_world results."""
    _status_line(console, result)
    _render_world_summary(console, result.data, verbose=verbose)
    if verbose:
        _render_meta(console, result)


def _render_universe(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render run_universe results, one block per finished world."""
    _status_line(console, result)
    _field(console, "world_count", result.data.get("world_count", 0))
    for summary in result.data.get("worlds", []):
        console.print()
        _render_world_summary(console, summary, verbose=verbose)


def _render_universe_failure(
    result: ServiceResult, console: Console, *, verbose: bool = False
) -> None:
    _render_error(result, console, verbose=verbose)
    for world_id, reason in result.data.get("failures", {}).items():
        console.print(Text(f"  {world_id}", style="arb.error"), Text(reason), sep=": ")
    finished = [summary["world_id"] for summary in result.data.get("worlds", [])]
    if finished:
        _field(console, "finished", ", ".join(finished))


# ── Task renderers ────────────────────────────────────────────────────


def _render_task(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render run_task results."""
    _status_line(console, result)
    for key in ("name", "command", "duration_ms"):
        if key in result.data:
            _field(console, key, result.data[key])
    if result.data.get("output"):
        console.print(result.data["output"].rstrip("\n"), markup=False)


def _render_task_failure(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    _render_error(result, console, verbose=verbose)
    if result.data.get("output"):
        console.print(result.data["output"].rstrip("\n"), markup=False)


def _render_task_list(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render list_tasks results as a table."""
    items = result.data.get("items", [])
    if not items:
        console.print("No tasks configured.")
        return
    table = Table(show_header=True, header_style="bold", box=None, pad_edge=False)
    table.add_column("Task", style="arb.id")
    table.add_column("Command", style="arb.command")
    for item in items:
        table.add_row(item["name"], item["command"])
    console.print(table)


# ── CI renderers ──────────────────────────────────────────────────────

_RULE = "-" * 40


def _check_lines(console: Console, checks: list[dict[str, Any]]) -> None:
    for check in checks:
        console.print(Text("Running ", style="bold"), Text(f"{check['name']}..."), sep="")
        if check["passed"]:
            console.print(Text("  PASSED", style="arb.ok"))
            continue
        console.print(Text("  FAILED", style="arb.error"))
        console.print(Text(_RULE, style="arb.error"))
        output = check.get("output", "").rstrip("\n")
        if output:
            console.print(Text(output, style="arb.error"))
        console.print(Text(_RULE, style="arb.error"))


def _render_ci(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render ci results: one line per check, then the summary."""
    checks = result.data.get("checks", [])
    _check_lines(console, checks)
    console.print()
    console.print(Text("CI Summary:", style="bold"))
    if not checks:
        console.print("No checks configured.")
        return
    console.print(Text("All checks passed successfully!", style="arb.ok"))
    if verbose:
        for check in checks:
            console.print(f"  {check['name']}: {check['duration_ms']} ms")


def _render_ci_failure(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    checks = result.data.get("checks", [])
    if not checks:
        _render_error(result, console, verbose=verbose)
        return
    _check_lines(console, checks)
    console.print()
    console.print(Text("CI Summary:", style="bold"))
    console.print(Text("Some checks failed. See output above for details.", style="arb.error"))
    failed = result.error.detail.get("failed", []) if result.error else []
    if failed:
        _field(console, "failed", ", ".join(failed))


# ── Simulation renderers ──────────────────────────────────────────────


def _render_simulation(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render leader/follower positions as a table."""
    _status_line(console, result)
    for key in ("ticks", "leaders", "followers", "seed"):
        if key in result.data:
            _field(console, key, result.data[key])
    agents = result.data.get("agents", [])
    if not agents:
        return
    table = Table(show_header=True, header_style="bold", box=None, pad_edge=False)
    table.add_column("Agent", style="arb.id")
    table.add_column("Type")
    table.add_column("X", justify="right")
    table.add_column("Y", justify="right")
    for agent in agents:
        kind = agent["type"]
        table.add_row(
            agent["id"],
            Text(kind, style=style_for_kind(kind)),
            f"{agent['x']:.1f}",
            f"{agent['y']:.1f}",
        )
    console.print(table)


# ── Generic fallback ──────────────────────────────────────────────────


def _render_generic(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Fallback renderer: status line + all data as key-value pairs."""
    _status_line(console, result)
    for key, value in result.data.items():
        if isinstance(value, (dict, list)):
            _field(console, key, _json.dumps(value, separators=(",", ":")))
        else:
            _field(console, key, value)
    if verbose:
        _render_meta(console, result)


# ── Dispatch tables ───────────────────────────────────────────────────

_OP_RENDERERS: dict[str, Renderer] = {
    "run_world": _render_world,
    "run_universe": _render_universe,
    "run_task": _render_task,
    "list_tasks": _render_task_list,
    "ci": _render_ci,
    "simulate": _render_simulation,
}

_ERROR_RENDERERS: dict[str, Renderer] = {
    "run_universe": _render_universe_failure,
    "run_task": _render_task_failure,
    "ci": _render_ci_failure,
}
