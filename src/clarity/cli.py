"""Clarity CLI: drive goals, tasks and daily plans from the terminal.

Installed as ``clarity`` console_script. State lives in a JSON store
(``--store`` or ``CLARITY_STORE_PATH``, default ``~/.clarity/store.json``).
"""

from __future__ import annotations

import functools
import sys
from typing import Any, Callable

import click

from clarity import __version__
from clarity import log
from clarity.config import Config
from clarity.engine import Engine
from clarity.errors import ClarityError
from clarity.store import JsonRecordStore
from clarity.tasks.model import GoalStatus


CONTEXT_SETTINGS = dict(help_option_names=["-h", "--help"])

_MIN_MINUTES = Config.min_task_minutes
_MAX_MINUTES = Config.max_task_minutes


def _engine(ctx: click.Context) -> Engine:
    return ctx.find_object(Engine)


def _handle_errors(func: Callable[..., Any]) -> Callable[..., Any]:
    """Report engine errors and exit 1 instead of dumping a traceback."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except ClarityError as exc:
            log.error(f"{exc} ({exc.code})")
            sys.exit(1)

    return wrapper


def _non_empty(ctx: click.Context, param: click.Parameter, value: str) -> str:
    value = value.strip()
    if not value:
        raise click.BadParameter("must not be empty", param_hint=param.name)
    if len(value) > 200:
        raise click.BadParameter("must be at most 200 characters", param_hint=param.name)
    return value


def _resolve_id(engine: Engine, table: str, raw: str) -> str:
    """Accept a full id or a unique prefix of one."""
    if engine.store.peek(table, raw) is not None:
        return raw
    matches = [r.id for r in engine.store.snapshot(table) if r.id.startswith(raw)]
    if len(matches) == 1:
        return matches[0]
    kind = table.rstrip("s")
    if not matches:
        raise click.BadParameter(f"no {kind} matches '{raw}'")
    raise click.BadParameter(f"'{raw}' is ambiguous ({len(matches)} {table} match)")


@click.group(context_settings=CONTEXT_SETTINGS)
@click.option("--store", "store_path", default="", help="Path to the JSON store")
@click.option("-v", "--verbose", is_flag=True, help="Show debug output")
@click.version_option(__version__, prog_name="clarity")
@click.pass_context
def main(ctx: click.Context, store_path: str, verbose: bool) -> None:
    """CLARITY: turn goals into ordered tasks and see them through.

    \b
    EXAMPLES:
      clarity user init "Ada"
      clarity goal add <user> "Ship the garden shed"
      clarity task add <goal> "Buy lumber" --minutes 45
      clarity next <goal>
      clarity task done <task>
      clarity plan start <user>
    """
    log.set_verbose(verbose)
    cfg = Config(store_path=store_path, verbose=verbose)
    ctx.obj = Engine(JsonRecordStore(cfg.store_path), cfg)
    log.debug(f"Using store {cfg.store_path}")


# ── users ────────────────────────────────────────────────────────────


@main.group()
def user() -> None:
    """Manage the user record (streaks live here)."""


@user.command("init")
@click.argument("name", callback=_non_empty)
@click.pass_context
@_handle_errors
def user_init(ctx: click.Context, name: str) -> None:
    """Create a user."""
    u = _engine(ctx).create_user(name)
    log.success(f"User created: {u.id}")


@user.command("show")
@click.argument("user_id")
@click.pass_context
@_handle_errors
def user_show(ctx: click.Context, user_id: str) -> None:
    """Show streak counters."""
    engine = _engine(ctx)
    u = engine.get_user(_resolve_id(engine, "users", user_id))
    log.console.print(f"[bold]{u.name or u.id}[/bold]")
    log.console.print(f"  Streak: {u.current_streak} day(s) (longest {u.longest_streak})")
    if u.last_active_date:
        log.console.print(f"  Last active: {u.last_active_date.isoformat()}")


# ── goals ────────────────────────────────────────────────────────────


@main.group()
def goal() -> None:
    """Create, list, archive and delete goals."""


@goal.command("add")
@click.argument("user_id")
@click.argument("title", callback=_non_empty)
@click.pass_context
@_handle_errors
def goal_add(ctx: click.Context, user_id: str, title: str) -> None:
    engine = _engine(ctx)
    g = engine.create_goal(_resolve_id(engine, "users", user_id), title)
    log.success(f"Goal created: {g.id}")


@goal.command("list")
@click.option("--user", "user_id", default="", help="Only goals of this user")
@click.option("--status", type=click.Choice([s.value for s in GoalStatus]), default=None)
@click.pass_context
@_handle_errors
def goal_list(ctx: click.Context, user_id: str, status: str | None) -> None:
    engine = _engine(ctx)
    uid = _resolve_id(engine, "users", user_id) if user_id else None
    goals = engine.list_goals(uid, GoalStatus(status) if status else None)
    if not goals:
        log.info("No goals.")
        return
    for g in goals:
        log.console.print(f"{g.id[:8]}  {g.title}  [dim]({g.status.value})[/dim]")
        log.progress("         ", g.progress)


@goal.command("archive")
@click.argument("goal_id")
@click.pass_context
@_handle_errors
def goal_archive(ctx: click.Context, goal_id: str) -> None:
    engine = _engine(ctx)
    g = engine.archive_goal(_resolve_id(engine, "goals", goal_id))
    log.success(f"Goal archived: {g.title}")


@goal.command("delete")
@click.argument("goal_id")
@click.pass_context
@_handle_errors
def goal_delete(ctx: click.Context, goal_id: str) -> None:
    """Soft-delete a goal and its tasks (undo within the window)."""
    engine = _engine(ctx)
    result = engine.soft_delete_goal(_resolve_id(engine, "goals", goal_id))
    log.success(f"Goal deleted with {len(result.cascade_deleted_task_ids)} task(s).")
    undo_args = " ".join([result.goal_id, *result.cascade_deleted_task_ids])
    log.info(f"Undo within {engine.config.undo_window_seconds:g}s: clarity goal undo {undo_args}")


@goal.command("undo")
@click.argument("goal_id")
@click.argument("task_ids", nargs=-1)
@click.pass_context
@_handle_errors
def goal_undo(ctx: click.Context, goal_id: str, task_ids: tuple[str, ...]) -> None:
    """Restore a deleted goal and the task ids printed by ``goal delete``."""
    engine = _engine(ctx)
    result = engine.undo_delete_goal(_resolve_id(engine, "goals", goal_id), list(task_ids))
    log.success(f"Goal restored with {len(result.restored_ids)} task(s).")


# ── tasks ────────────────────────────────────────────────────────────


@main.group()
def task() -> None:
    """Add, complete, skip and delete tasks."""


@task.command("add")
@click.argument("goal_id")
@click.argument("title", callback=_non_empty)
@click.option("--minutes", type=click.IntRange(_MIN_MINUTES, _MAX_MINUTES), default=30, show_default=True)
@click.option("--after", "depends_on", multiple=True, help="Task id this task depends on (repeatable)")
@click.option("--order", "sort_order", type=int, default=None, help="Sort position (default: last)")
@click.option("--done-when", "done_definition", default="", help="What 'done' looks like")
@click.pass_context
@_handle_errors
def task_add(
    ctx: click.Context,
    goal_id: str,
    title: str,
    minutes: int,
    depends_on: tuple[str, ...],
    sort_order: int | None,
    done_definition: str,
) -> None:
    engine = _engine(ctx)
    t = engine.add_task(
        _resolve_id(engine, "goals", goal_id),
        title,
        estimated_minutes=minutes,
        depends_on=[_resolve_id(engine, "tasks", d) for d in depends_on],
        sort_order=sort_order,
        done_definition=done_definition,
    )
    log.success(f"Task created: {t.id}")


@task.command("list")
@click.argument("goal_id")
@click.pass_context
@_handle_errors
def task_list(ctx: click.Context, goal_id: str) -> None:
    engine = _engine(ctx)
    tasks = engine.list_tasks(_resolve_id(engine, "goals", goal_id))
    if not tasks:
        log.info("No tasks.")
        return
    marks = {"completed": "[green]✔[/green]", "skipped": "[dim]↷[/dim]", "in_progress": "[yellow]…[/yellow]"}
    for t in tasks:
        mark = marks.get(t.status.value, " ")
        deps = f"  [dim]after {', '.join(d[:8] for d in t.depends_on)}[/dim]" if t.depends_on else ""
        log.console.print(f"{mark} {t.id[:8]}  {t.title}  [dim]~{t.estimated_minutes}m[/dim]{deps}")


@task.command("done")
@click.argument("task_id")
@click.pass_context
@_handle_errors
def task_done(ctx: click.Context, task_id: str) -> None:
    engine = _engine(ctx)
    outcome = engine.complete_task(_resolve_id(engine, "tasks", task_id))
    log.celebrate(outcome.reinforcement.message)
    if outcome.milestone is not None:
        log.celebrate(f"MILESTONE: {outcome.milestone}% complete!")
    if outcome.streak.is_new_record:
        log.celebrate(f"New streak record: {outcome.streak.current} day(s)!")
    log.progress("Progress", outcome.goal_progress)
    if outcome.next_task is not None:
        log.info(f"Next: {outcome.next_task.title} ({outcome.next_task.id[:8]})")


@task.command("skip")
@click.argument("task_id")
@click.pass_context
@_handle_errors
def task_skip(ctx: click.Context, task_id: str) -> None:
    engine = _engine(ctx)
    engine.skip_task(_resolve_id(engine, "tasks", task_id))
    log.info("Task skipped.")


@task.command("delete")
@click.argument("task_id")
@click.pass_context
@_handle_errors
def task_delete(ctx: click.Context, task_id: str) -> None:
    """Soft-delete a task and its direct dependents."""
    engine = _engine(ctx)
    result = engine.soft_delete_task(_resolve_id(engine, "tasks", task_id))
    extra = f" (+{len(result.cascade_deleted_ids)} dependent)" if result.cascade_deleted_ids else ""
    log.success(f"Task deleted{extra}.")
    log.info(f"Undo within {engine.config.undo_window_seconds:g}s: clarity task undo {result.task_id}")


@task.command("undo")
@click.argument("task_id")
@click.pass_context
@_handle_errors
def task_undo(ctx: click.Context, task_id: str) -> None:
    engine = _engine(ctx)
    result = engine.undo_delete_task(_resolve_id(engine, "tasks", task_id))
    log.success(f"Restored {len(result.restored_ids)} task(s).")


@task.command("deps")
@click.argument("task_id")
@click.argument("depends_on", nargs=-1)
@click.pass_context
@_handle_errors
def task_deps(ctx: click.Context, task_id: str, depends_on: tuple[str, ...]) -> None:
    """Replace a task's dependencies (no ids clears them)."""
    engine = _engine(ctx)
    t = engine.set_dependencies(
        _resolve_id(engine, "tasks", task_id),
        [_resolve_id(engine, "tasks", d) for d in depends_on],
    )
    log.success(f"Dependencies updated: {len(t.depends_on)}")


@task.command("schedule")
@click.argument("task_id")
@click.argument("day", type=click.DateTime(formats=["%Y-%m-%d"]))
@click.option("--start", default="", help="Start time, HH:MM")
@click.option("--duration", type=click.IntRange(_MIN_MINUTES, _MAX_MINUTES), default=30, show_default=True)
@click.pass_context
@_handle_errors
def task_schedule(ctx: click.Context, task_id: str, day: Any, start: str, duration: int) -> None:
    engine = _engine(ctx)
    t = engine.schedule_task(_resolve_id(engine, "tasks", task_id), day.date(), start, duration)
    log.success(f"Scheduled {t.title} for {t.schedule.date.isoformat()}")


@task.command("unschedule")
@click.argument("task_id")
@click.pass_context
@_handle_errors
def task_unschedule(ctx: click.Context, task_id: str) -> None:
    engine = _engine(ctx)
    t = engine.unschedule_task(_resolve_id(engine, "tasks", task_id))
    log.info(f"{t.title} is no longer scheduled.")


# ── focus ────────────────────────────────────────────────────────────


@main.command("next")
@click.argument("goal_id")
@click.pass_context
@_handle_errors
def next_task(ctx: click.Context, goal_id: str) -> None:
    """Show the next task you can work on."""
    engine = _engine(ctx)
    view = engine.get_next_task(_resolve_id(engine, "goals", goal_id))
    if view.task is None:
        if view.total_tasks and view.goal_progress == 100:
            log.celebrate("All tasks complete!")
        else:
            log.info("Nothing to work on right now.")
        log.progress("Goal", view.goal_progress)
        return
    log.console.print(f"─── Task {view.position} of {view.total_tasks} ───")
    log.console.print(f"[bold]{view.task.title}[/bold]  [dim]({view.task.id[:8]})[/dim]")
    if view.task.done_definition:
        log.console.print(f"Done when: {view.task.done_definition}")
    log.console.print(f"Estimated: ~{view.task.estimated_minutes} min")


# ── daily plan ───────────────────────────────────────────────────────


@main.group()
def plan() -> None:
    """Plan today's focus time."""


@plan.command("start")
@click.argument("user_id")
@click.pass_context
@_handle_errors
def plan_start(ctx: click.Context, user_id: str) -> None:
    engine = _engine(ctx)
    uid = _resolve_id(engine, "users", user_id)
    p = engine.start_daily_plan(uid)
    log.success(f"Plan {p.id} for {p.date.isoformat()} ({p.status.value})")
    unfinished = engine.yesterday_unfinished(uid)
    if unfinished:
        log.info(f"{len(unfinished)} unfinished from yesterday:")
        for u in unfinished:
            log.console.print(f"  {u.id[:8]}  {u.title}  [dim]{u.goal_title}, ~{u.estimated_minutes}m[/dim]")


@plan.command("select")
@click.argument("plan_id")
@click.argument("task_ids", nargs=-1)
@click.pass_context
@_handle_errors
def plan_select(ctx: click.Context, plan_id: str, task_ids: tuple[str, ...]) -> None:
    engine = _engine(ctx)
    result = engine.update_daily_plan_selections(
        _resolve_id(engine, "plans", plan_id),
        [_resolve_id(engine, "tasks", t) for t in task_ids],
    )
    log.info(f"Total: {result.total_minutes} min")
    if result.is_overcommitted:
        log.warn(f"Overcommitted by {result.overcommitted_by_minutes} min")


@plan.command("confirm")
@click.argument("plan_id")
@click.pass_context
@_handle_errors
def plan_confirm(ctx: click.Context, plan_id: str) -> None:
    engine = _engine(ctx)
    result = engine.confirm_daily_plan(_resolve_id(engine, "plans", plan_id))
    log.success(
        f"Plan confirmed: {result.confirmed_task_count} task(s), {result.total_estimated_minutes} min"
    )


@plan.command("skip")
@click.argument("plan_id")
@click.pass_context
@_handle_errors
def plan_skip(ctx: click.Context, plan_id: str) -> None:
    engine = _engine(ctx)
    engine.skip_daily_plan(_resolve_id(engine, "plans", plan_id))
    log.info("Planning skipped for today.")


@plan.command("yesterday")
@click.argument("user_id")
@click.pass_context
@_handle_errors
def plan_yesterday(ctx: click.Context, user_id: str) -> None:
    engine = _engine(ctx)
    unfinished = engine.yesterday_unfinished(_resolve_id(engine, "users", user_id))
    if not unfinished:
        log.info("Nothing left over from yesterday.")
        return
    for u in unfinished:
        log.console.print(f"{u.id[:8]}  {u.title}  [dim]{u.goal_title}, ~{u.estimated_minutes}m[/dim]")


# ── maintenance ──────────────────────────────────────────────────────


@main.command()
@click.option("--age", type=float, default=None, help="Purge tombstones older than this many seconds")
@click.pass_context
@_handle_errors
def purge(ctx: click.Context, age: float | None) -> None:
    """Permanently remove expired soft-deleted records."""
    count = _engine(ctx).purge_expired(age)
    log.success(f"Purged {count} task(s).")


@main.command("history")
@click.argument("user_id")
@click.option("--days", type=click.IntRange(1, 365), default=30, show_default=True)
@click.pass_context
@_handle_errors
def history_cmd(ctx: click.Context, user_id: str, days: int) -> None:
    engine = _engine(ctx)
    h = engine.history(_resolve_id(engine, "users", user_id), days)
    log.console.print(f"Tasks completed: {h.total_tasks_completed}")
    log.console.print(f"Goals completed: {h.total_goals_completed}")
    log.console.print(f"Average per active day: {h.average_tasks_per_day}")
    for rec in h.records:
        log.console.print(f"  {rec.date.isoformat()}  {rec.tasks_completed}")

