"""Implementation of the release command.

Without ``--write`` the command only reports what would be released. With
``--write`` it updates version and changelog, builds, commits and tags; in
release mode it also pushes, creates the GitHub release and publishes.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from rich.panel import Panel
from rich.text import Text

from semrel.config.loader import build_pipeline_config
from semrel.core.pipeline import PipelineState, PipelineStep, ReleasePipeline
from semrel.exceptions import BarrierError, PipelineStepError, SemrelError
from semrel.forge.github import GitHubReleases
from semrel.project.packager import UvPackager, UvPublisher
from semrel.vcs import GitRepository

if TYPE_CHECKING:
    from rich.console import Console

    from semrel.config.models import PipelineConfig
    from semrel.core.pipeline import PipelineResult

_REMOTE_STEPS = frozenset(
    {PipelineStep.PUSH, PipelineStep.RELEASE_CREATION, PipelineStep.PUBLISH}
)


def create_pipeline(repo: GitRepository, config: PipelineConfig) -> ReleasePipeline:
    """Wire the collaborators for ``config``."""
    settings = config.settings
    packager = UvPackager(config.repository_path, dist_dir=settings.publish.dist_dir)

    forge = None
    publisher = None
    if config.credentials is not None:
        creds = config.credentials
        forge = GitHubReleases(
            creds.owner,
            creds.repo,
            token=creds.github_token,
            api_url=settings.github.api_url,
        )
        if settings.publish.enabled:
            publisher = UvPublisher(
                config.repository_path,
                token=creds.registry_token,
                publish_url=settings.publish.publish_url,
            )

    return ReleasePipeline(
        config,
        repository=repo,
        packager=packager,
        forge=forge,
        publisher=publisher,
    )


def run_release(
    path: str | None,
    write: bool,
    release: bool,
    branch: str | None,
    console: Console,
    err_console: Console,
) -> None:
    """Run the release command.

    Args:
        path: Optional path to the repository
        write: Whether to apply changes (ignored on CI, which always writes)
        release: Whether to push, create the GitHub release and publish
        branch: Release branch override
        console: Console for standard output
        err_console: Console for error output
    """
    project_path = Path(path) if path else Path.cwd()

    try:
        repo = GitRepository(project_path)
    except SemrelError as e:
        err_console.print(f"[red]Could not open the git repository:[/] {e}")
        raise SystemExit(1) from e

    try:
        config = build_pipeline_config(repo, write=write, release=release, branch=branch)
    except SemrelError as e:
        err_console.print(f"[red]Configuration error:[/] {e}")
        raise SystemExit(1) from e

    mode_str = "[yellow]DRY-RUN[/]" if config.dry_run else "[green]WRITE[/]"
    release_str = "release" if config.release_mode else "local only"
    console.print(f"{mode_str} - analyzing [cyan]{repo.path}[/] ({release_str})")

    try:
        result = create_pipeline(repo, config).run()
    except PipelineStepError as e:
        err_console.print(f"[red]Release step '{e.step}' failed:[/] {e.cause}")
        if e.step in _REMOTE_STEPS:
            err_console.print(
                "[dim]The commit and tag already exist locally; "
                "re-running will not undo or repeat completed steps.[/]"
            )
        raise SystemExit(1) from e
    except BarrierError as e:
        err_console.print(f"[red]Stopping here:[/] {e}")
        raise SystemExit(1) from e
    except SemrelError as e:
        err_console.print(f"[red]Error:[/] {e}")
        raise SystemExit(1) from e

    _report(result, console)


def _report(result: PipelineResult, console: Console) -> None:
    decision = result.decision
    if result.state in {PipelineState.SKIP, PipelineState.NO_RELEASE} or decision is None:
        console.print(f"[yellow]{result.message}.[/]")
        return

    if result.state is PipelineState.DRY_RUN_REPORT:
        console.print(
            f"Bump would be [cyan]{decision.category}[/]: "
            f"[cyan]{decision.current_version}[/] → [green]{decision.new_version}[/]"
        )
        console.print(
            Panel(
                Text(result.notes or ""),
                title=f"[yellow]Changelog for {result.tag_name}[/]",
                border_style="yellow",
            )
        )
        console.print("\n[dim]Run with [cyan]--write[/] to apply these changes.[/]")
        return

    lines = [f"[green]{result.message}[/]", ""]
    lines.extend(f"  [green]✓[/] {step}" for step in result.completed_steps)
    if result.release_url:
        lines.extend(["", f"Release: [cyan]{result.release_url}[/]"])
    console.print(
        Panel(
            "\n".join(lines),
            title=f"[green]{decision.current_version} → {decision.new_version}[/]",
            border_style="green",
        )
    )
