"""Dependency-aware task selection within a single goal."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from clarity import log
from clarity.errors import DependencyCycle, InvalidDependency
from clarity.tasks.model import Task, TaskStatus


@dataclass
class NextTask:
    task: Task | None
    position: int
    total_tasks: int


class TaskGraph:
    """Read-only view over the active tasks of one goal.

    Usage::

        graph = TaskGraph(tasks)       # tombstoned tasks are ignored
        nxt = graph.get_next()         # lowest sort_order eligible pending task
        graph.explain_block(tid)       # why a task is not eligible

    A dependency on a task that is missing or tombstoned counts as
    satisfied, so deleting a blocker never deadlocks its dependents.
    """

    def __init__(self, tasks: Iterable[Task]) -> None:
        active = [t for t in tasks if not t.is_deleted]
        self._tasks = sorted(active, key=lambda t: (t.sort_order, t.id))
        self._by_id = {t.id: t for t in self._tasks}

    # ── state queries ────────────────────────────────────────────

    def count_total(self) -> int:
        return len(self._tasks)

    def count_completed(self) -> int:
        return sum(1 for t in self._tasks if t.is_completed)

    def count_pending(self) -> int:
        return sum(1 for t in self._tasks if t.status == TaskStatus.PENDING)

    # ── dependency checks ────────────────────────────────────────

    def deps_satisfied(self, task_id: str) -> bool:
        task = self._by_id.get(task_id)
        if task is None:
            return False
        for dep in task.depends_on:
            if not dep:
                continue
            blocker = self._by_id.get(dep)
            if blocker is not None and not blocker.is_completed:
                return False
        return True

    # ── selection ────────────────────────────────────────────────

    def ready(self) -> list[Task]:
        """Pending tasks whose dependencies are all satisfied, in sort order."""
        return [
            t for t in self._tasks
            if t.status == TaskStatus.PENDING and self.deps_satisfied(t.id)
        ]

    def get_next(self) -> NextTask:
        ready = self.ready()
        task = ready[0] if ready else None
        if task is None and self.is_starved():
            blocked = ", ".join(
                f"{t.id} [{self.explain_block(t.id)}]"
                for t in self._tasks
                if t.status == TaskStatus.PENDING
            )
            log.warn(f"No eligible task: every pending task is blocked ({blocked})")
        return NextTask(
            task=task,
            position=self.count_completed() + 1,
            total_tasks=self.count_total(),
        )

    # ── diagnostics ──────────────────────────────────────────────

    def is_starved(self) -> bool:
        """Return ``True`` if pending tasks remain but none can start."""
        return self.count_pending() > 0 and not self.ready()

    def explain_block(self, task_id: str) -> str:
        """Human-readable explanation of why *task_id* is blocked."""
        task = self._by_id.get(task_id)
        if task is None:
            return ""
        blocked = []
        for dep in task.depends_on:
            blocker = self._by_id.get(dep)
            if blocker is not None and not blocker.is_completed:
                blocked.append(f"{dep} ({blocker.status.value})")
        if not blocked:
            return ""
        return f"dependsOn: {' '.join(blocked)}"


def find_cycle(edges: dict[str, list[str]]) -> list[str] | None:
    """Return one dependency cycle as a closed path, or ``None``.

    *edges* maps task id to the ids it depends on. Unknown ids are leaves.
    """
    white, gray, black = 0, 1, 2
    color = {node: white for node in edges}
    stack: list[str] = []

    def visit(node: str) -> list[str] | None:
        color[node] = gray
        stack.append(node)
        for dep in edges.get(node, []):
            state = color.get(dep, black)
            if state == gray:
                return stack[stack.index(dep):] + [dep]
            if state == white:
                found = visit(dep)
                if found:
                    return found
        stack.pop()
        color[node] = black
        return None

    for node in sorted(edges):
        if color[node] == white:
            found = visit(node)
            if found:
                return found
    return None


def validate_dependencies(siblings: Iterable[Task], task_id: str, depends_on: list[str]) -> None:
    """Reject *depends_on* for *task_id* if it references a non-sibling or closes a cycle.

    *siblings* are the goal's active tasks; *task_id* may or may not be among
    them yet (creation vs. edit).
    """
    active = {t.id: t for t in siblings if not t.is_deleted}
    for dep in depends_on:
        if dep == task_id:
            raise InvalidDependency(f"task {task_id} cannot depend on itself")
        if dep not in active:
            raise InvalidDependency(
                f"task {task_id} depends on {dep}, which is not an active task of the same goal"
            )

    edges = {tid: list(t.depends_on) for tid, t in active.items()}
    edges[task_id] = list(depends_on)
    cycle = find_cycle(edges)
    if cycle:
        raise DependencyCycle(cycle)
