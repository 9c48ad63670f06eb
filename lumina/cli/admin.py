"""Operator CLI for seeding the store and inspecting catalog and learner progress."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, List

import typer
from rich.console import Console
from rich.table import Table

from lumina.bootstrap import load_seed_bundle, seed_store
from lumina.core.config import CONFIG_ENV_VAR, LuminaConfig, load_config
from lumina.learning.access import lock_map
from lumina.learning.catalog import CourseCatalog
from lumina.learning.models import Course
from lumina.storage.store import LuminaStore, StoreError

ENV_REPO_ROOT = "LUMINA_REPO_ROOT"


def _resolve_repo_root() -> Path:
    override = os.environ.get(ENV_REPO_ROOT)
    if override:
        return Path(override).expanduser().resolve()
    return Path(__file__).resolve().parents[2]


REPO_ROOT = _resolve_repo_root()
DEFAULT_CONFIG = REPO_ROOT / "config" / "lumina.yaml"

app = typer.Typer(help="Administer the Lumina course portal store.")
console = Console()


def _load_config(config: Path | None) -> LuminaConfig:
    if config is None and not os.environ.get(CONFIG_ENV_VAR) and DEFAULT_CONFIG.exists():
        config = DEFAULT_CONFIG
    try:
        return load_config(config)
    except (OSError, ValueError) as exc:
        raise typer.BadParameter(f"Could not load config: {exc}") from exc


def _open_store(config: Path | None, store: Path | None, *, must_exist: bool = True) -> LuminaStore:
    resolved = store.expanduser().resolve() if store is not None else _load_config(config).storage.sqlite_path
    if must_exist and not resolved.exists():
        raise typer.BadParameter(f"Lumina store not found at {resolved}")
    return LuminaStore(resolved)


def course_rows(courses: List[Course]) -> List[Dict[str, Any]]:
    return [
        {
            "id": course.id,
            "title": course.title,
            "role": course.required_role.value,
            "code": "yes" if course.is_code_gated else "no",
            "modules": len(course.modules),
        }
        for course in courses
    ]


def progress_rows(store: LuminaStore, user_id: str) -> List[Dict[str, Any]]:
    catalog = CourseCatalog(store.get_courses())
    progress = store.get_user_progress(user_id)
    rows: List[Dict[str, Any]] = []
    for course_id, course_progress in progress.root.items():
        course = catalog.find(course_id)
        locks = lock_map(course, course_progress) if course is not None else {}
        rows.append(
            {
                "course": course_id,
                "title": course.title if course else "(deleted)",
                "completed": f"{len(course_progress.completed_module_ids)}/{len(course.modules) if course else '?'}",
                "current": course_progress.current_module_id,
                "unlocked": course_progress.is_unlocked,
                "open_modules": sum(1 for locked in locks.values() if not locked),
            }
        )
    return rows


def _print_table(headers: list[str], rows: List[dict], keys: list[str]) -> None:
    table = Table(*headers)
    for row in rows:
        table.add_row(*[str(row.get(key, "")) for key in keys])
    console.print(table)


CONFIG_OPTION = typer.Option(None, "--config", show_default=False, help="Portal YAML (defaults to LUMINA_CONFIG or config/lumina.yaml).")
STORE_OPTION = typer.Option(None, "--store", show_default=False, help="SQLite store path overriding the config.")


@app.command()
def seed(
    catalog: Path | None = typer.Option(None, "--catalog", show_default=False, help="Seed YAML overriding the config."),
    config: Path | None = CONFIG_OPTION,
    store: Path | None = STORE_OPTION,
    force: bool = typer.Option(False, "--force", help="Overwrite a store that was already seeded."),
) -> None:
    """Write the seed catalog, demo users, announcements, and forum posts."""

    cfg = _load_config(config)
    seed_path = catalog or cfg.seed.catalog_path
    if seed_path is None:
        raise typer.BadParameter("No seed catalog configured; pass --catalog")
    try:
        bundle = load_seed_bundle(seed_path)
    except ValueError as exc:
        console.print(f"[red]{exc}[/red]", soft_wrap=True)
        raise typer.Exit(code=1) from exc

    target = _open_store(config, store or cfg.storage.sqlite_path, must_exist=False)
    if seed_store(target, bundle, force=force):
        console.print(f"[green]Seeded[/green] {target.db_path} with {len(bundle.courses)} course(s)", soft_wrap=True)
    else:
        console.print(f"[yellow]Store {target.db_path} is already seeded; use --force to overwrite[/yellow]", soft_wrap=True)


@app.command()
def courses(
    config: Path | None = CONFIG_OPTION,
    store: Path | None = STORE_OPTION,
    as_json: bool = typer.Option(False, "--json", help="Emit JSON instead of a table."),
) -> None:
    """List catalog courses with their gates."""

    rows = course_rows(_open_store(config, store).get_courses())
    if as_json:
        typer.echo(json.dumps(rows, indent=2, ensure_ascii=False))
        return
    _print_table(["Course", "Title", "Role", "Code", "Modules"], rows, ["id", "title", "role", "code", "modules"])


@app.command()
def progress(
    user_id: str = typer.Argument(..., help="User id to inspect."),
    config: Path | None = CONFIG_OPTION,
    store: Path | None = STORE_OPTION,
    as_json: bool = typer.Option(False, "--json", help="Emit JSON instead of a table."),
) -> None:
    """Show one learner's progress per course."""

    rows = progress_rows(_open_store(config, store), user_id)
    if as_json:
        typer.echo(json.dumps(rows, indent=2, ensure_ascii=False))
        return
    if not rows:
        console.print(f"[dim]No progress recorded for {user_id}[/dim]")
        return
    _print_table(
        ["Course", "Title", "Completed", "Current", "Unlocked", "Open"],
        rows,
        ["course", "title", "completed", "current", "unlocked", "open_modules"],
    )


@app.command("verify-user")
def verify_user(
    user_id: str = typer.Argument(..., help="User id whose license was reviewed."),
    config: Path | None = CONFIG_OPTION,
    store: Path | None = STORE_OPTION,
) -> None:
    """Mark a user's license as verified."""

    target = _open_store(config, store)
    user = target.get_user(user_id)
    if user is None:
        console.print(f"[red]Unknown user {user_id}[/red]")
        raise typer.Exit(code=1)
    try:
        target.update_user(user.model_copy(update={"is_verified": True}))
    except StoreError as exc:
        console.print(f"[red]{exc}[/red]", soft_wrap=True)
        raise typer.Exit(code=1) from exc
    console.print(f"[green]Verified[/green] {user.name} ({user.email})")


@app.command("validate-catalog")
def validate_catalog(
    config: Path | None = CONFIG_OPTION,
    store: Path | None = STORE_OPTION,
) -> None:
    """Check that every course numbers its modules 1..n with unique ids."""

    report = CourseCatalog(_open_store(config, store).get_courses()).integrity_report()
    failures = 0
    for course_id, result in report.items():
        for warning in result.warnings:
            console.print(f"[yellow]{course_id}: {warning}[/yellow]")
        for error in result.errors:
            console.print(f"[red]{course_id}: {error}[/red]")
        failures += 0 if result.valid else 1
    if failures:
        raise typer.Exit(code=1)
    console.print(f"[green]{len(report)} course(s) valid[/green]")


if __name__ == "__main__":  # pragma: no cover
    app()
