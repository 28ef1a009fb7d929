"""Release pipeline orchestration.

The pipeline is a small state machine::

    INIT → BRANCH_GATE → {SKIP | CI_BARRIER} → {SKIP | VERSION_DECISION}
         → {NO_RELEASE | DRY_RUN_REPORT | WRITE_SEQUENCE}

``SKIP``, ``NO_RELEASE``, ``DRY_RUN_REPORT`` and ``WRITE_SEQUENCE`` are
terminal. Successful no-op outcomes (wrong branch, pull request, not the
build leader, nothing to release) return a :class:`PipelineResult`;
failures raise a :class:`~semrel.exceptions.SemrelError`.

The write sequence runs its steps strictly in order:

1. write the new version into the manifest
2. prepend the release notes to the changelog
3. refresh the lock file (release mode only)
4. build the package
5. commit manifest, changelog and lock file
6. create the annotated tag ``v<version>``
7. push commit and tag (release mode only)
8. wait briefly, then create the hosted release (release mode only)
9. publish to the package registry (release mode only)

A failing step raises :class:`~semrel.exceptions.PipelineStepError` and
the remaining steps do not run. Nothing is retried and completed steps are
not undone, so re-running after a late failure can collide with the tag or
commit left behind by the partial run.
"""

from __future__ import annotations

import os
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING, TypeVar

from semrel.ci.barrier import BarrierDecision, BarrierReason, BuildBarrier
from semrel.ci.environment import ci_branch, detect_environment, is_ci, is_pull_request
from semrel.config.loader import get_project_name
from semrel.core.changelog import (
    compose_changelog,
    prepend_changelog_entry,
    release_notes_or_fallback,
)
from semrel.core.commits import ReleaseDecision, decide_release
from semrel.exceptions import (
    BarrierError,
    ConfigError,
    PipelineStepError,
    RepositoryError,
    SemrelError,
)
from semrel.logging import get_logger
from semrel.process import TimeoutExpired
from semrel.project.pyproject import read_manifest_version, update_pyproject_version

if TYPE_CHECKING:
    from collections.abc import Mapping

    from semrel.config.models import PipelineConfig
    from semrel.core.version import Version
    from semrel.forge.github import GitHubReleases
    from semrel.project.packager import UvPackager, UvPublisher
    from semrel.vcs.git import GitRepository

log = get_logger("semrel.pipeline")

T = TypeVar("T")


class PipelineState(StrEnum):
    INIT = "init"
    BRANCH_GATE = "branch_gate"
    CI_BARRIER = "ci_barrier"
    VERSION_DECISION = "version_decision"
    SKIP = "skip"
    NO_RELEASE = "no_release"
    DRY_RUN_REPORT = "dry_run_report"
    WRITE_SEQUENCE = "write_sequence"


class PipelineStep(StrEnum):
    MANIFEST_WRITE = "manifest write"
    CHANGELOG_WRITE = "changelog write"
    LOCK_REFRESH = "lock refresh"
    PACKAGE_BUILD = "package build"
    COMMIT = "commit"
    TAG = "tag"
    PUSH = "push"
    RELEASE_CREATION = "release creation"
    PUBLISH = "publish"


@dataclass(frozen=True)
class PipelineResult:
    """How a pipeline run ended without error."""

    state: PipelineState
    message: str
    decision: ReleaseDecision | None = None
    notes: str | None = None
    tag_name: str | None = None
    completed_steps: tuple[PipelineStep, ...] = ()
    release_url: str | None = None

    @property
    def exit_code(self) -> int:
        return 0

    @property
    def released(self) -> bool:
        return self.state is PipelineState.WRITE_SEQUENCE


class ReleasePipeline:
    """Runs one release attempt for the repository in ``config``.

    Args:
        config: Validated run configuration.
        repository: Repository collaborator.
        packager: Lock/build collaborator.
        forge: Release-hosting collaborator; required in release mode.
        publisher: Registry collaborator; required in release mode when
            publishing is enabled.
        barrier: Build barrier to use on CI. Built from the environment
            when omitted.
        env: Environment variables (defaults to ``os.environ``).
        sleep: Used for the tag propagation delay.
        today: Date used in the changelog heading.
    """

    def __init__(
        self,
        config: PipelineConfig,
        *,
        repository: GitRepository,
        packager: UvPackager,
        forge: GitHubReleases | None = None,
        publisher: UvPublisher | None = None,
        barrier: BuildBarrier | None = None,
        env: Mapping[str, str] | None = None,
        sleep: Callable[[float], None] = time.sleep,
        today: Callable[[], date] = date.today,
    ) -> None:
        if config.requires_credentials:
            if forge is None:
                raise ConfigError("Release mode requires a release-hosting client")
            if publisher is None and config.settings.publish.enabled:
                raise ConfigError("Release mode requires a registry publisher")

        self.config = config
        self.state = PipelineState.INIT
        self._repository = repository
        self._packager = packager
        self._forge = forge
        self._publisher = publisher
        self._barrier = barrier
        self._env = os.environ if env is None else env
        self._sleep = sleep
        self._today = today
        self._completed: list[PipelineStep] = []

    # -------------------------------------------------------------------------
    # State machine
    # -------------------------------------------------------------------------

    def _enter(self, state: PipelineState) -> None:
        log.debug("pipeline_state", state=str(state))
        self.state = state

    def _finish(self, state: PipelineState, message: str, **fields: object) -> PipelineResult:
        self._enter(state)
        log.info("pipeline_finished", state=str(state), reason=message)
        return PipelineResult(
            state=state,
            message=message,
            completed_steps=tuple(self._completed),
            **fields,  # type: ignore[arg-type]
        )

    def run(self) -> PipelineResult:
        """Run the pipeline until a terminal state.

        Raises:
            RepositoryError: If the current branch or the commit range
                cannot be determined.
            BarrierError: If this job leads the build but may not release.
            ProjectError: If the manifest version cannot be read.
            PipelineStepError: If a write sequence step fails.
        """
        config = self.config
        log.info(
            "pipeline_started",
            path=str(config.repository_path),
            dry_run=config.dry_run,
            release_mode=config.release_mode,
        )

        self._enter(PipelineState.BRANCH_GATE)
        branch = ci_branch(self._env) or self._repository.current_branch()
        if branch is None:
            raise RepositoryError("Could not determine current branch")
        if is_pull_request(self._env):
            return self._finish(PipelineState.SKIP, "No release is done from a pull request")
        if branch != config.release_branch:
            return self._finish(
                PipelineState.SKIP,
                f"Current branch is '{branch}', releases are only done from "
                f"branch '{config.release_branch}'",
            )

        barrier = self._resolve_barrier()
        if barrier is not None:
            self._enter(PipelineState.CI_BARRIER)
            outcome = barrier.wait()
            if outcome.decision is BarrierDecision.NOT_LEADER:
                return self._finish(PipelineState.SKIP, "Not the build leader. Nothing to do")
            if outcome.decision is BarrierDecision.LEADER_ABORT:
                reason = outcome.reason or BarrierReason.ENVIRONMENT_UNAVAILABLE
                raise BarrierError(reason, outcome.detail)
            log.info("build_leader_proceeds")

        self._enter(PipelineState.VERSION_DECISION)
        decision = self._decide()
        new_version = decision.new_version
        if new_version is None:
            return self._finish(
                PipelineState.NO_RELEASE,
                "No version bump. Nothing to do",
                decision=decision,
            )

        notes = self._release_notes(decision, new_version)
        tag_name = config.settings.tag_name(new_version)

        if config.dry_run:
            return self._finish(
                PipelineState.DRY_RUN_REPORT,
                f"New version would be {new_version}",
                decision=decision,
                notes=notes,
                tag_name=tag_name,
            )

        self._enter(PipelineState.WRITE_SEQUENCE)
        release_url = self._write(new_version, notes, tag_name)
        return self._finish(
            PipelineState.WRITE_SEQUENCE,
            f"Released {tag_name}" if config.release_mode else f"Tagged {tag_name} locally",
            decision=decision,
            notes=notes,
            tag_name=tag_name,
            release_url=release_url,
        )

    def _resolve_barrier(self) -> BuildBarrier | None:
        ci = self.config.settings.ci
        if not ci.enabled or not is_ci(self._env):
            return None
        if self._barrier is not None:
            return self._barrier
        environment = detect_environment(self._env, travis_api_url=ci.travis_api_url)
        return BuildBarrier(environment, poll_interval=ci.poll_interval, max_wait=ci.max_wait)

    def _decide(self) -> ReleaseDecision:
        settings = self.config.settings
        current = read_manifest_version(self.config.repository_path)
        last_tag = self._repository.get_latest_tag(settings.tag_pattern)
        commits = self._repository.get_commits_since_tag(last_tag)
        decision = decide_release(commits, current, settings.commits)
        log.info(
            "version_decided",
            current=str(current),
            last_tag=last_tag,
            commits=len(commits),
            bump=str(decision.category),
            new=str(decision.new_version) if decision.new_version else None,
        )
        return decision

    def _release_notes(self, decision: ReleaseDecision, new_version: Version) -> str:
        changelog_settings = self.config.settings.changelog
        changelog = compose_changelog(
            [pc.commit for pc in decision.commits],
            decision.current_version,
            new_version,
            self.config.settings.commits,
        )
        if changelog.is_empty:
            log.info("changelog_fallback", text=changelog_settings.fallback_text)
        return release_notes_or_fallback(
            changelog,
            changelog_settings.fallback_text,
            include_scope=changelog_settings.include_scope,
            include_sha=changelog_settings.include_sha,
        )

    # -------------------------------------------------------------------------
    # Write sequence
    # -------------------------------------------------------------------------

    def _step(self, step: PipelineStep, action: Callable[[], T]) -> T:
        log.info("release_step", step=str(step))
        try:
            result = action()
        except (SemrelError, OSError, TimeoutExpired) as e:
            log.error(
                "release_step_failed",
                step=str(step),
                completed=[str(s) for s in self._completed],
                error=str(e),
            )
            raise PipelineStepError(step, e) from e
        self._completed.append(step)
        return result

    def _write(self, new_version: Version, notes: str, tag_name: str) -> str | None:
        config = self.config
        settings = config.settings
        root = config.repository_path

        files: list[Path] = []

        manifest = self._step(
            PipelineStep.MANIFEST_WRITE,
            lambda: update_pyproject_version(root, str(new_version)),
        )
        files.append(manifest)

        changelog_path = root / settings.changelog.path
        self._step(
            PipelineStep.CHANGELOG_WRITE,
            lambda: prepend_changelog_entry(changelog_path, new_version, notes, self._today()),
        )
        files.append(changelog_path)

        if config.release_mode:
            lock_file = self._step(PipelineStep.LOCK_REFRESH, self._packager.refresh_lock)
            if Path(lock_file).exists():
                files.append(lock_file)

        dist_dir = self._step(PipelineStep.PACKAGE_BUILD, self._packager.build)

        message = settings.commit_message.format(version=new_version)
        self._step(
            PipelineStep.COMMIT,
            lambda: self._repository.commit_files(files, message, config.committer),
        )
        self._step(
            PipelineStep.TAG,
            lambda: self._repository.create_tag(tag_name, notes, config.committer),
        )

        if not config.release_mode:
            log.info("release_mode_off", hint="commit and tag were created locally only")
            return None

        self._step(
            PipelineStep.PUSH,
            lambda: self._repository.push(settings.remote, config.release_branch, tag_name),
        )

        # The hosting service needs a moment before the pushed tag is visible.
        self._sleep(settings.github.propagation_delay)
        release_url = self._step(
            PipelineStep.RELEASE_CREATION,
            lambda: self._create_release(tag_name, notes),
        )

        publisher = self._publisher
        if settings.publish.enabled and publisher is not None:
            self._step(
                PipelineStep.PUBLISH,
                lambda: publisher.publish(dist_dir, get_project_name(root), new_version),
            )
        return release_url

    def _create_release(self, tag_name: str, notes: str) -> str:
        if self._forge is None:
            raise ConfigError("Release mode requires a release-hosting client")
        return self._forge.create_release(tag_name, title=tag_name, body=notes)
