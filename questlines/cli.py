from __future__ import annotations

import asyncio
import dataclasses
import json
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, TypeVar

import typer

from questlines.core.config import ConfigError, Settings, load_settings
from questlines.core.errors import QuestlineError, QuestlineLoadError, ValidationRejection
from questlines.core.graph.queries import quest_by_id, quest_status
from questlines.core.io.load_questline import load_questline_file
from questlines.core.lint.lint_questline import lint_questline
from questlines.core.logging import configure_logging
from questlines.core.model import Dependency, Questline, edge_id
from questlines.core.persistence.factory import create_backend, create_preferences
from questlines.core.session.session import QuestlineSession

app = typer.Typer(add_completion=False, no_args_is_help=True)

T = TypeVar("T")


@app.callback()
def _callback(
    ctx: typer.Context,
    mode: Optional[str] = typer.Option(None, "--mode", help="Persistence mode: remote|local"),
    api_base: Optional[str] = typer.Option(None, "--api-base", help="Questlines API base URL"),
    store: Optional[str] = typer.Option(None, "--store", help="Path to the local key-value store file"),
    verbose: int = typer.Option(0, "--verbose", "-v", count=True, help="-v info, -vv debug"),
) -> None:
    """Questlines CLI."""
    configure_logging(verbose)
    try:
        ctx.obj = load_settings(mode=mode, api_base=api_base, store_path=store)
    except ConfigError as e:
        _print_errors([ValidationRejection(code="E_CONFIG", message=str(e), path="config")])
        raise typer.Exit(code=2)


@app.command("list")
def list_cmd(
    ctx: typer.Context,
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """List saved questlines, most recently updated first."""
    _check_format(format)

    async def go(session: QuestlineSession) -> None:
        summaries = await session.refresh_summaries()
        _exit_on_error(session)
        if format == "json":
            _emit_json("list", {"questlines": [s.to_dict() for s in summaries]})
            return
        if not summaries:
            typer.echo("No questlines.")
            return
        for s in summaries:
            typer.echo(f"{s.id}  {s.name}  {s.completed_quests}/{s.total_quests} done  {s.updated or '-'}")

    _run(ctx.obj, go)


@app.command("show")
def show(
    ctx: typer.Context,
    questline_id: str = typer.Argument(..., help="Questline id"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Show quests with their status (done / ready / blocked) and dependencies."""
    _check_format(format)

    async def go(session: QuestlineSession) -> None:
        await _load_or_exit(session, questline_id)
        ql = session.questline
        if format == "json":
            payload = ql.to_dict()
            payload["status"] = {q.id: quest_status(ql, q) for q in ql.quests}
            _emit_json("show", {"questline": payload})
            return
        typer.echo(_render_questline(ql))

    _run(ctx.obj, go)


@app.command("import")
def import_cmd(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Questline file (.json/.yaml/.yml), e.g. a previous export"),
) -> None:
    """Import a questline file and save it as a new questline.

    The file's own id is ignored, so re-importing an export makes a copy.
    """
    try:
        raw = load_questline_file(path)
    except QuestlineLoadError as e:
        _print_errors([e])
        raise typer.Exit(code=1)
    raw.pop("id", None)

    async def go(session: QuestlineSession) -> Questline:
        session.import_questline(raw)
        if not await session.save():
            _exit_on_error(session)
        return session.questline

    saved = _run(ctx.obj, go)
    typer.echo(f"OK: imported '{saved.name}' as {saved.id} ({len(saved.quests)} quests)")


@app.command("export")
def export(
    ctx: typer.Context,
    questline_id: str = typer.Argument(..., help="Questline id"),
    fmt: str = typer.Option("json", "--format", help="Export format (local mode supports json)"),
    out: Optional[str] = typer.Option(None, "--out", help="Directory to write the export into"),
) -> None:
    """Export a saved questline to a file."""
    settings: Settings = ctx.obj
    if out is not None:
        settings = dataclasses.replace(settings, export_dir=Path(out))

    async def go(session: QuestlineSession) -> Optional[Path]:
        await _load_or_exit(session, questline_id)
        written = await session.export(fmt)
        _exit_on_error(session)
        return written

    written = _run(settings, go)
    typer.echo(f"OK: wrote {written}")


@app.command("delete")
def delete(
    ctx: typer.Context,
    questline_id: str = typer.Argument(..., help="Questline id"),
) -> None:
    """Delete a saved questline."""

    async def go(session: QuestlineSession) -> None:
        await _load_or_exit(session, questline_id)
        if not await session.delete():
            _exit_on_error(session)

    _run(ctx.obj, go)
    typer.echo(f"OK: deleted {questline_id}")


@app.command("complete")
def complete(
    ctx: typer.Context,
    questline_id: str = typer.Argument(..., help="Questline id"),
    quest_id: str = typer.Argument(..., help="Quest id"),
) -> None:
    """Mark a quest complete (requires completed prerequisites and objectives)."""

    def edit(session: QuestlineSession) -> list[str]:
        _require_quest(session, quest_id)
        return session.set_quest_completed(quest_id, True)

    changed = _edit(ctx.obj, questline_id, edit)
    typer.echo(f"OK: {quest_id} complete" if changed else f"OK: {quest_id} was already complete")


@app.command("uncomplete")
def uncomplete(
    ctx: typer.Context,
    questline_id: str = typer.Argument(..., help="Questline id"),
    quest_id: str = typer.Argument(..., help="Quest id"),
) -> None:
    """Mark a quest incomplete; completed downstream quests follow."""

    def edit(session: QuestlineSession) -> list[str]:
        _require_quest(session, quest_id)
        return session.set_quest_completed(quest_id, False)

    changed = _edit(ctx.obj, questline_id, edit)
    if not changed:
        typer.echo(f"OK: {quest_id} was not complete")
        return
    typer.echo(f"OK: {quest_id} incomplete")
    cascaded = [qid for qid in changed if qid != quest_id]
    if cascaded:
        typer.echo("Also marked incomplete: " + ", ".join(cascaded))


@app.command("add-quest")
def add_quest(
    ctx: typer.Context,
    questline_id: str = typer.Argument(..., help="Questline id"),
    title: str = typer.Argument(..., help="Quest title"),
) -> None:
    """Add a quest to a saved questline."""
    quest = _edit(ctx.obj, questline_id, lambda session: session.add_quest(title=title))
    typer.echo(f"OK: added {quest.id}")


@app.command("remove-quest")
def remove_quest(
    ctx: typer.Context,
    questline_id: str = typer.Argument(..., help="Questline id"),
    quest_ids: list[str] = typer.Argument(..., help="Quest id(s) to remove"),
) -> None:
    """Remove quests and every dependency touching them."""
    result = _edit(ctx.obj, questline_id, lambda session: session.remove_quests(quest_ids))
    typer.echo("OK: removed" if result.changed else "OK: nothing to remove")
    if result.uncompleted:
        typer.echo("Also marked incomplete: " + ", ".join(result.uncompleted))


@app.command("link")
def link(
    ctx: typer.Context,
    questline_id: str = typer.Argument(..., help="Questline id"),
    source: str = typer.Argument(..., help="Prerequisite quest id"),
    target: str = typer.Argument(..., help="Dependent quest id"),
) -> None:
    """Add a prerequisite edge SOURCE -> TARGET."""

    def edit(session: QuestlineSession) -> bool:
        _require_quest(session, source)
        _require_quest(session, target)
        return session.add_dependency(source, target)

    _edit(ctx.obj, questline_id, edit)
    typer.echo(f"OK: linked {source} -> {target}")


@app.command("unlink")
def unlink(
    ctx: typer.Context,
    questline_id: str = typer.Argument(..., help="Questline id"),
    source: str = typer.Argument(..., help="Prerequisite quest id"),
    target: str = typer.Argument(..., help="Dependent quest id"),
) -> None:
    """Remove the prerequisite edge SOURCE -> TARGET."""

    def edit(session: QuestlineSession):
        ids = [eid for eid, dep in session.questline.edges() if dep == Dependency(source, target)]
        return session.remove_dependencies(ids)

    result = _edit(ctx.obj, questline_id, edit)
    typer.echo(f"OK: unlinked {source} -> {target}" if result.changed else "OK: no such link")
    if result.uncompleted:
        typer.echo("Also marked incomplete: " + ", ".join(result.uncompleted))


@app.command("rename")
def rename(
    ctx: typer.Context,
    questline_id: str = typer.Argument(..., help="Questline id"),
    name: str = typer.Argument(..., help="New name"),
) -> None:
    """Rename a saved questline."""
    _edit(ctx.obj, questline_id, lambda session: session.rename(name))
    typer.echo(f"OK: renamed {questline_id} to '{name}'")


@app.command("check")
def check(
    ctx: typer.Context,
    target: str = typer.Argument(..., help="Questline id, or a .json/.yaml questline file"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Report structural problems: dangling/duplicate/self links, cycles, early completions."""
    _check_format(format)

    if Path(target).is_file():
        try:
            raw = load_questline_file(target)
        except QuestlineLoadError as e:
            _print_errors([e])
            raise typer.Exit(code=1)
        file: Optional[str] = target
    else:

        async def go(session: QuestlineSession) -> dict[str, Any]:
            await _load_or_exit(session, target)
            return session.questline.to_dict()

        raw = _run(ctx.obj, go)
        file = None

    errors = lint_questline(raw, file=file)
    if format == "json":
        _emit_json(
            "check",
            {
                "ok": not errors,
                "error_count": len(errors),
                "errors": [
                    {"code": e.code, "message": e.message, "file": e.file, "path": e.path} for e in errors
                ],
            },
            exit_code=2 if errors else 0,
        )
        return
    if errors:
        _print_errors(errors)
        raise typer.Exit(code=2)
    typer.echo("OK: check passed")


def _run(settings: Settings, fn: Callable[[QuestlineSession], Awaitable[T]]) -> T:
    async def main() -> T:
        store = create_preferences(settings)
        session = QuestlineSession(create_backend(settings, store), store)
        try:
            return await fn(session)
        finally:
            await session.aclose()

    return asyncio.run(main())


def _edit(settings: Settings, questline_id: str, edit: Callable[[QuestlineSession], T]) -> T:
    """Load a saved questline, apply one edit, and save it if anything changed."""

    async def go(session: QuestlineSession) -> T:
        await _load_or_exit(session, questline_id)
        result = edit(session)
        _exit_on_error(session)
        if session.has_unsaved_changes and not await session.save():
            _exit_on_error(session)
        return result

    return _run(settings, go)


async def _load_or_exit(session: QuestlineSession, questline_id: str) -> None:
    if not await session.load(questline_id):
        _exit_on_error(session)


def _require_quest(session: QuestlineSession, quest_id: str) -> None:
    if quest_by_id(session.questline, quest_id) is None:
        _print_errors(
            [
                ValidationRejection(
                    code="E_QUEST_NOT_FOUND",
                    message=f"unknown quest id: {quest_id}",
                    path=f"quests[{quest_id}]",
                )
            ]
        )
        raise typer.Exit(code=2)


def _exit_on_error(session: QuestlineSession) -> None:
    err = session.last_error
    if err is None:
        return
    _print_errors([err])
    raise typer.Exit(code=2 if isinstance(err, ValidationRejection) else 1)


def _check_format(format: str) -> None:
    if format not in ("text", "json"):
        _print_errors(
            [
                ValidationRejection(
                    code="E_UNKNOWN_FORMAT",
                    message=f"unknown format: {format} (choose one of: text, json)",
                    path="format",
                )
            ]
        )
        raise typer.Exit(code=2)


def _emit_json(command: str, body: dict[str, Any], exit_code: int = 0) -> None:
    payload = {"tool": "questlines", "command": command, **body}
    payload.setdefault("ok", True)
    typer.echo(json.dumps(payload, indent=2, sort_keys=True))
    if exit_code:
        raise typer.Exit(code=exit_code)


def _render_questline(ql: Questline) -> str:
    done = sum(1 for q in ql.quests if q.completed)
    lines = [f"{ql.name} ({ql.id})", f"Quests: {done}/{len(ql.quests)} done"]
    for q in ql.quests:
        status = quest_status(ql, q)
        line = f"  [{status}] {q.title} ({q.id})"
        if q.objectives:
            ticked = sum(1 for o in q.objectives if o.completed)
            line += f"  objectives {ticked}/{len(q.objectives)}"
        lines.append(line)
    if ql.dependencies:
        lines.append("Dependencies:")
        for i, dep in enumerate(ql.dependencies):
            lines.append(f"  {dep.source} -> {dep.target}  ({edge_id(dep, i)})")
    return "\n".join(lines)


def _print_errors(errors: list[QuestlineError]) -> None:
    errors_sorted = sorted(errors, key=lambda e: (e.file or "", e.path or "", e.code))
    for e in errors_sorted:
        typer.echo(str(e), err=True)


def main() -> None:
    app(prog_name="questlines")


cli = typer.main.get_command(app)

if __name__ == "__main__":
    main()
