"""Manifest executor.

Turns a manifest file into files on disk:

    load -> validate -> guards -> generate tasks -> render -> plan -> apply

Load, validation and guard failures are fatal and raised before anything is
written.  Per-task problems (missing templates, render errors, collisions,
failed writes) are recorded in the :class:`ExecutionSummary` and the run
carries on.

Cancellation and timeouts are cooperative and never roll back: files written
before the cancellation point stay on disk and are listed in
``ManifestExecutor.summary``.

Usage::

    python -m manifestgen.executor manifest.yaml --output ./out
    python -m manifestgen.executor manifest.yaml --output ./out --dry-run
"""

from __future__ import annotations

import asyncio
import sys
import threading
import time
from collections.abc import Awaitable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Optional, TypeVar

from manifestgen.cancellation import CancellationToken
from manifestgen.config import EngineConfig
from manifestgen.manifest.errors import (
    ConcurrentExecutionError,
    ExecutionCancelled,
    GuardError,
    ManifestError,
    TaskFailuresError,
)
from manifestgen.manifest.models import (
    CollisionPolicy,
    ExecutionSummary,
    FileChange,
    FileChangeKind,
    ManifestDocument,
    MissingProjectAction,
    ProjectDefinition,
    RenderTask,
)
from manifestgen.manifest.parser import load_manifest, validate_manifest
from manifestgen.manifest.tasks import TaskGenerator
from manifestgen.templating.batch import BatchRenderer, RenderRequest
from manifestgen.templating.engine import TemplateEngine
from manifestgen.templating.errors import TemplateError, TemplateNotFoundError
from manifestgen.templating.resolver import TemplateResolver
from manifestgen.utils import (
    ProgressEvent,
    ProgressSink,
    console_progress_sink,
    format_duration,
    print_error,
    print_execution_summary,
    print_stage_header,
    print_success,
    print_warning,
)

T = TypeVar("T")


# ---------------------------------------------------------------------------
# State
# ---------------------------------------------------------------------------


class ExecutionState(str, Enum):
    """Where an execution currently is. ``FAILED`` is reachable from any state."""

    PENDING = "pending"
    LOADED = "loaded"
    VALIDATED = "validated"
    GUARDS_CHECKED = "guards-checked"
    TASKS_GENERATED = "tasks-generated"
    RENDERED = "rendered"
    PLANNED = "planned"
    APPLIED = "applied"
    DRY_RUN_REPORTED = "dry-run-reported"
    FAILED = "failed"


@dataclass
class ExecutionPlan:
    """Directories and file changes waiting to be applied."""

    directories: list[tuple[Path, str]] = field(default_factory=list)
    changes: list[FileChange] = field(default_factory=list)


# Output roots currently being written by an executor in this process.
_ACTIVE_ROOTS: set[Path] = set()
_ACTIVE_ROOTS_LOCK = threading.Lock()


def _overlaps(a: Path, b: Path) -> bool:
    return a == b or a in b.parents or b in a.parents


def _claim_output_root(root: Path) -> None:
    with _ACTIVE_ROOTS_LOCK:
        for active in _ACTIVE_ROOTS:
            if _overlaps(root, active):
                raise ConcurrentExecutionError(root, active)
        _ACTIVE_ROOTS.add(root)


def _release_output_root(root: Path) -> None:
    with _ACTIVE_ROOTS_LOCK:
        _ACTIVE_ROOTS.discard(root)


# ---------------------------------------------------------------------------
# Scaffolding content
# ---------------------------------------------------------------------------


def build_solution_stub() -> str:
    """Minimal empty Visual Studio solution."""
    return (
        "Microsoft Visual Studio Solution File, Format Version 12.00\n"
        "# Visual Studio Version 17\n"
        "VisualStudioVersion = 17.0.31903.59\n"
        "MinimumVisualStudioVersion = 10.0.40219.1\n"
        'Project("{2150E333-8FDC-42A3-9474-1A3956D46DE8}") = "Solution Items", '
        '"Solution Items", "{9A19103F-16F7-4668-BE54-9A1E7A4F7556}"\n'
        "EndProject\n"
        "Global\n"
        "    GlobalSection(SolutionConfigurationPlatforms) = preSolution\n"
        "        Debug|Any CPU = Debug|Any CPU\n"
        "        Release|Any CPU = Release|Any CPU\n"
        "    EndGlobalSection\n"
        "    GlobalSection(ProjectConfigurationPlatforms) = postSolution\n"
        "    EndGlobalSection\n"
        "EndGlobal\n"
    )


def build_project_stub(name: str, target_framework: str, author: str) -> str:
    """Minimal SDK-style ``.csproj``."""
    return (
        '<Project Sdk="Microsoft.NET.Sdk">\n'
        "  <PropertyGroup>\n"
        f"    <TargetFramework>{target_framework}</TargetFramework>\n"
        "    <ImplicitUsings>enable</ImplicitUsings>\n"
        "    <Nullable>enable</Nullable>\n"
        f"    <Authors>{author}</Authors>\n"
        f"    <Company>{author}</Company>\n"
        f"    <Product>{name}</Product>\n"
        "  </PropertyGroup>\n"
        "</Project>\n"
    )


def build_project_payload(manifest: ManifestDocument, project: ProjectDefinition) -> dict[str, Any]:
    """Data handed to project templates."""
    payload: dict[str, Any] = {
        "name": project.name,
        "namespace_root": manifest.conventions.namespace_root,
        "target_framework": manifest.conventions.target_framework,
    }
    if manifest.meta.author:
        payload["author"] = manifest.meta.author
    return payload


def normalize_line_endings(text: str) -> str:
    return text.replace("\r\n", "\n")


def _read_text(path: Path) -> str:
    return path.read_text(encoding="utf-8")


def _write_text(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


# ---------------------------------------------------------------------------
# Executor
# ---------------------------------------------------------------------------


class ManifestExecutor:
    """Applies one manifest at a time to an output root.

    Attributes:
        config: Engine settings.
        state: Current :class:`ExecutionState`.
        summary: Accumulated result of the current (or last) execution.
            Still readable after a cancellation or a failed apply.
        tasks: Render tasks generated by the last execution.
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        *,
        progress: ProgressSink | None = None,
        cancellation: CancellationToken | None = None,
        engine: TemplateEngine | None = None,
    ) -> None:
        self.config = config or EngineConfig()
        self.progress = progress
        self.cancellation = cancellation
        self.engine = engine
        self.state = ExecutionState.PENDING
        self.summary = ExecutionSummary()
        self.tasks: list[RenderTask] = []
        self._started = 0.0
        self._manifest_path = Path()
        self._templates_root: Optional[Path] = None
        self._templates_searched = False
        self._render_engine: Optional[TemplateEngine] = None
        self._renderer: Optional[BatchRenderer] = None

    async def execute(
        self,
        manifest_path: str | Path,
        output_root: str | Path,
        dry_run: bool = False,
    ) -> ExecutionSummary:
        """Run the full pipeline and return the summary.

        Raises:
            ManifestError: Load, validation or guard failure; also
                ``ExecutionCancelled`` on cancellation or timeout,
                ``ConcurrentExecutionError`` when another execution in this
                process writes to an overlapping root, and
                ``TaskFailuresError`` when task failures are configured to be
                fatal.
            TemplateNotFoundError: Tasks need rendering but no templates
                directory was found.
        """
        root = Path(output_root).resolve()
        self._reset(Path(manifest_path))
        try:
            _claim_output_root(root)
        except ConcurrentExecutionError:
            self.state = ExecutionState.FAILED
            raise
        try:
            run = self._run(self._manifest_path, root, dry_run)
            if self.config.timeout is None:
                return await run
            try:
                return await asyncio.wait_for(run, timeout=self.config.timeout)
            except asyncio.TimeoutError as exc:
                raise ExecutionCancelled(
                    f"execution timed out after {format_duration(self.config.timeout)}"
                ) from exc
        except BaseException:
            self.state = ExecutionState.FAILED
            raise
        finally:
            _release_output_root(root)

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _run(self, manifest_path: Path, output_root: Path, dry_run: bool) -> ExecutionSummary:
        manifest = await self._await(load_manifest(manifest_path))
        self._advance(ExecutionState.LOADED, f"parsed {manifest_path.name}")

        validate_manifest(manifest)
        self._advance(ExecutionState.VALIDATED, f"manifest '{manifest.meta.name}' is valid")

        summary = self.summary
        summary.notes.append(f"Applying manifest kind {manifest.kind.value}")
        summary.notes.append(f"Namespace root: {manifest.conventions.namespace_root}")
        if manifest.meta.description:
            summary.notes.append(f"Manifest description: {manifest.meta.description}")

        solution_root = output_root / manifest.solution.root
        summary.notes.append(f"Solution root: {solution_root}")

        projects = self._check_guards(manifest, solution_root)
        self._advance(ExecutionState.GUARDS_CHECKED, f"{len(projects)} project(s) in scope")

        self.tasks = TaskGenerator(manifest).generate()
        self._advance(ExecutionState.TASKS_GENERATED, f"{len(self.tasks)} render task(s)")

        self._render_engine = self._engine(manifest)
        plan = ExecutionPlan()
        if self.config.scaffold_solution:
            await self._plan_scaffold(manifest, solution_root, projects, plan)
        rendered = await self._render(self.tasks, output_root)
        self._advance(ExecutionState.RENDERED, f"{len(rendered)} of {len(self.tasks)} task(s) rendered")

        await self._plan_tasks(rendered, manifest.conventions.policy.collision, plan)
        self._advance(ExecutionState.PLANNED, f"{len(plan.changes)} change(s) planned")

        await self._apply(plan, dry_run)
        if dry_run:
            self._advance(ExecutionState.DRY_RUN_REPORTED, "dry run, nothing written")
        else:
            self._advance(
                ExecutionState.APPLIED,
                f"{len(summary.created)} created, {len(summary.updated)} updated",
            )

        strict = self.config.fail_on_task_errors or manifest.conventions.policy.strict
        if strict and summary.has_errors:
            raise TaskFailuresError(summary)
        return summary

    def _check_guards(
        self, manifest: ManifestDocument, solution_root: Path
    ) -> list[ProjectDefinition]:
        """Apply ``guards`` and return the projects that stay in scope."""
        guards = manifest.guards
        if not guards.require_existing_projects:
            return list(manifest.projects.values())

        if not solution_root.is_dir():
            raise GuardError(solution_root, "solution root")
        solution_file = solution_root / manifest.solution.sln_file
        if not solution_file.is_file():
            raise GuardError(solution_file, "solution file")

        in_scope: list[ProjectDefinition] = []
        for project in manifest.projects.values():
            csproj = solution_root / project.path / f"{project.name}.csproj"
            if csproj.is_file():
                in_scope.append(project)
            elif guards.on_missing_project is MissingProjectAction.SKIP:
                self.summary.skipped.append(
                    (csproj, "project missing (skipped due to guard configuration)")
                )
            else:
                raise GuardError(csproj)
        return in_scope

    async def _plan_scaffold(
        self,
        manifest: ManifestDocument,
        solution_root: Path,
        projects: list[ProjectDefinition],
        plan: ExecutionPlan,
    ) -> None:
        if not solution_root.exists():
            plan.directories.append((solution_root, "solution root"))

        solution_file = solution_root / manifest.solution.sln_file
        if solution_file.exists():
            self.summary.skipped.append((solution_file, "solution already exists"))
        else:
            plan.changes.append(FileChange(
                path=solution_file,
                content=build_solution_stub(),
                kind=FileChangeKind.CREATE,
                note="solution scaffold",
            ))

        for project in projects:
            project_dir = solution_root / project.path
            csproj = project_dir / f"{project.name}.csproj"
            if not project_dir.exists():
                plan.directories.append((project_dir, "project root"))
            if csproj.exists():
                self.summary.skipped.append((csproj, "project already exists"))
                continue

            content = await self._project_content(manifest, project)
            if content is None:
                self.summary.skipped.append((csproj, "project template failed"))
                continue
            plan.changes.append(FileChange(
                path=csproj,
                content=content,
                kind=FileChangeKind.CREATE,
                note=f"project scaffold ({project.kind.value})",
            ))

    async def _project_content(
        self, manifest: ManifestDocument, project: ProjectDefinition
    ) -> Optional[str]:
        template = project.kind.template_path()
        renderer = self._renderer_or_none()
        if template is not None and renderer is not None:
            request = RenderRequest(template, build_project_payload(manifest, project), Path())
            try:
                return await self._await(renderer.render_one(request))
            except TemplateNotFoundError:
                pass
            except TemplateError as exc:
                self.summary.errors.append(f"{template}: {exc}")
                return None
        author = manifest.meta.author or manifest.meta.name
        return build_project_stub(project.name, manifest.conventions.target_framework, author)

    async def _render(
        self, tasks: list[RenderTask], output_root: Path
    ) -> list[tuple[RenderTask, Path, str]]:
        """Render every task; failures are recorded and dropped."""
        if not tasks:
            return []
        renderer = self._renderer_or_none()
        if renderer is None:
            searched = ", ".join(str(p) for p in self.config.template_root_candidates(self._manifest_path))
            raise TemplateNotFoundError(f"templates directory (searched: {searched})")

        requests = [
            RenderRequest(task.template, task.data, output_root / task.destination)
            for task in tasks
        ]
        outcomes = await self._await(renderer.render_many(requests))

        rendered: list[tuple[RenderTask, Path, str]] = []
        for task, outcome in zip(tasks, outcomes):
            destination = outcome.request.destination
            if outcome.error is not None:
                self.summary.errors.append(f"{task.template}: {outcome.error}")
                self.summary.skipped.append((destination, f"render failed ({task.kind.label})"))
            else:
                rendered.append((task, destination, outcome.content or ""))
        return rendered

    async def _plan_tasks(
        self,
        rendered: list[tuple[RenderTask, Path, str]],
        collision: CollisionPolicy,
        plan: ExecutionPlan,
    ) -> None:
        for task, destination, content in rendered:
            self._checkpoint()
            if not destination.exists():
                plan.changes.append(
                    FileChange(destination, content, FileChangeKind.CREATE, task.note)
                )
                continue

            if collision is CollisionPolicy.FAIL:
                self.summary.skipped.append((destination, "collision"))
                continue

            try:
                existing = await asyncio.to_thread(_read_text, destination)
            except (OSError, UnicodeDecodeError):
                existing = None
            if existing is not None and normalize_line_endings(existing) == normalize_line_endings(content):
                self.summary.skipped.append((destination, f"unchanged {task.kind.label}"))
                continue
            plan.changes.append(
                FileChange(destination, content, FileChangeKind.UPDATE, task.note)
            )

    async def _apply(self, plan: ExecutionPlan, dry_run: bool) -> None:
        for directory, note in plan.directories:
            self._checkpoint()
            await self._ensure_directory(directory, dry_run, note)

        for change in plan.changes:
            self._checkpoint()
            note = change.note or "no note"
            if dry_run:
                verb = "create" if change.kind is FileChangeKind.CREATE else "update"
                self.summary.notes.append(f"would {verb}: {change.path} ({note})")
                continue

            try:
                await asyncio.to_thread(_write_text, change.path, change.content)
            except OSError as exc:
                self.summary.errors.append(f"failed to write {change.path}: {exc}")
                self.summary.skipped.append((change.path, "write failed"))
                continue

            if change.kind is FileChangeKind.CREATE:
                self.summary.created.append(change.path)
            else:
                self.summary.updated.append(change.path)

    async def _ensure_directory(self, path: Path, dry_run: bool, note: str) -> None:
        if path.exists():
            return
        if dry_run:
            self.summary.notes.append(f"create directory (dry-run): {path} ({note})")
            return
        try:
            await asyncio.to_thread(path.mkdir, parents=True, exist_ok=True)
        except OSError as exc:
            self.summary.errors.append(f"failed to create directory {path}: {exc}")
            return
        self.summary.notes.append(f"Created directory: {path} ({note})")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _reset(self, manifest_path: Path) -> None:
        self.state = ExecutionState.PENDING
        self.summary = ExecutionSummary()
        self.tasks = []
        self._started = time.monotonic()
        self._manifest_path = manifest_path
        self._templates_root = None
        self._templates_searched = False
        self._render_engine = None
        self._renderer = None

    def _engine(self, manifest: ManifestDocument) -> TemplateEngine:
        """The shared engine, configured for this manifest's TODO policy."""
        if self.engine is None:
            self.engine = TemplateEngine(todo_comment=self.config.todo_comment)
        return self.engine.with_todo_insertion(
            manifest.conventions.policy.insert_todo_when_missing
        )

    def _locate_templates_root(self) -> Optional[Path]:
        if not self._templates_searched:
            self._templates_searched = True
            for candidate in self.config.template_root_candidates(self._manifest_path):
                if candidate.is_dir():
                    self._templates_root = candidate
                    break
        return self._templates_root

    def _renderer_or_none(self) -> Optional[BatchRenderer]:
        if self._renderer is None:
            root = self._locate_templates_root()
            if root is None:
                return None
            resolver = TemplateResolver(root, search_fallback=self.config.search_fallback)
            self._renderer = BatchRenderer(
                root,
                engine=self._render_engine,
                resolver=resolver,
                max_concurrency=self.config.max_concurrency,
            )
        return self._renderer

    def _checkpoint(self) -> None:
        if self.cancellation is not None:
            self.cancellation.raise_if_cancelled()

    async def _await(self, awaitable: Awaitable[T]) -> T:
        if self.cancellation is None:
            return await awaitable
        return await self.cancellation.run(awaitable)

    def _advance(self, state: ExecutionState, message: str) -> None:
        self._checkpoint()
        self.state = state
        if self.progress is None:
            return
        event = ProgressEvent(state.value, message, time.monotonic() - self._started)
        try:
            self.progress(event)
        except Exception as exc:
            print_warning(f"progress sink failed: {exc}")


async def execute(
    manifest_path: str | Path,
    output_root: str | Path,
    dry_run: bool = False,
    *,
    config: EngineConfig | None = None,
    progress: ProgressSink | None = None,
    cancellation: CancellationToken | None = None,
) -> ExecutionSummary:
    """Apply the manifest at *manifest_path* to *output_root*.

    Shortcut for ``ManifestExecutor(...).execute(...)``.
    """
    executor = ManifestExecutor(config, progress=progress, cancellation=cancellation)
    return await executor.execute(manifest_path, output_root, dry_run)


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------


def main() -> None:
    """CLI entry point for ``python -m manifestgen.executor``."""
    import argparse

    parser = argparse.ArgumentParser(
        description="manifestgen -- generate layered source files from a manifest",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  python -m manifestgen.executor manifest.yaml\n"
            "  python -m manifestgen.executor manifest.yaml -o ./out --dry-run\n"
            "  python -m manifestgen.executor manifest.yaml --templates ./templates\n"
        ),
    )

    parser.add_argument("manifest", help="Path to the manifest YAML file")
    parser.add_argument(
        "--output", "-o",
        default=".",
        help="Output root (default: current directory)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report planned changes without writing anything",
    )
    parser.add_argument(
        "--templates",
        default=None,
        help="Templates directory (default: searched next to the manifest)",
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        default=None,
        help="Maximum concurrent renders (default: CPU count)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Abort the run after this many seconds",
    )
    parser.add_argument(
        "--fail-on-task-errors",
        action="store_true",
        help="Exit with an error when any individual task fails",
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Do not print progress events",
    )

    args = parser.parse_args()

    manifest_path = Path(args.manifest)
    if not manifest_path.exists():
        print_error(f"Error: Manifest file not found: {manifest_path}")
        sys.exit(1)

    config = EngineConfig.from_env()
    if args.templates:
        config.templates_root = Path(args.templates)
    if args.concurrency is not None:
        if args.concurrency < 1:
            print_error(f"Error: Invalid concurrency: {args.concurrency} (must be >= 1)")
            sys.exit(1)
        config.max_concurrency = args.concurrency
    if args.timeout is not None:
        config.timeout = args.timeout
    if args.fail_on_task_errors:
        config.fail_on_task_errors = True

    output_root = Path(args.output)
    print_stage_header(f"{'Dry run' if args.dry_run else 'Apply'}: {manifest_path.name}")

    started = time.monotonic()
    executor = ManifestExecutor(
        config, progress=None if args.quiet else console_progress_sink
    )
    try:
        summary = asyncio.run(executor.execute(manifest_path, output_root, args.dry_run))
    except TaskFailuresError as exc:
        print_execution_summary(exc.summary, args.dry_run, output_root.resolve())
        print_error(str(exc))
        sys.exit(1)
    except (ManifestError, TemplateError) as exc:
        if executor.summary.created or executor.summary.updated:
            print_execution_summary(executor.summary, args.dry_run, output_root.resolve())
        print_error(f"Error: {exc}")
        sys.exit(1)

    print_execution_summary(summary, args.dry_run, output_root.resolve())
    elapsed = format_duration(time.monotonic() - started)
    if summary.has_errors:
        print_warning(f"Completed with {len(summary.errors)} task error(s) in {elapsed}")
    else:
        print_success(f"Completed in {elapsed}")


if __name__ == "__main__":
    main()
