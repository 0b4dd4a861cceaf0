#!/usr/bin/env python3
"""Batch driver: rename the primary branch across the selected repositories."""

from __future__ import annotations

from collections import Counter
from typing import List

from config import Config, RepositoryIdentifier
from github_gateway import GitHubGateway
from logging_utils import Logger
from migration_sequencer import MigrationOutcome, OutcomeKind, migrate
from repo_selector import RepositorySelector

# Exit codes
EXIT_SUCCESS = 0
EXIT_EXECUTION_ERROR = 1
EXIT_NOT_CONFIRMED = 3


def confirm(prompt: str) -> bool:
    """Ask a yes/no question on stdin; anything but yes is a no."""
    try:
        answer = input(f"{prompt} [y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


class RenameOrchestrator:
    def __init__(self, cfg: Config) -> None:
        self.cfg = cfg
        Logger.set_verbose(cfg.migration.verbose)
        self.gh = GitHubGateway(cfg.github)
        self.outcomes: List[MigrationOutcome] = []

    def run(self) -> int:
        migration = self.cfg.migration
        try:
            self.gh.connect()
            selector = RepositorySelector(self.gh.api, self.gh.rate_limiter)
            repos = selector.select(self.cfg.selection)

            if not repos:
                Logger.warn("no repositories selected, nothing to do")
                return EXIT_SUCCESS

            if migration.dry_run:
                Logger.info("dry-run: no changes will be made")
            elif not self.cfg.confirmed and not confirm(
                f"rename '{migration.old_branch}' to '{migration.new_branch}' "
                f"in {len(repos)} repositories?"
            ):
                Logger.warn("aborted: not confirmed")
                return EXIT_NOT_CONFIRMED

            total = len(repos)
            for idx, repo in enumerate(repos, start=1):
                Logger.info(f"[{idx}/{total}] {repo}")
                self.outcomes.append(self._process_single_repo(repo))

            self._log_summary()
            return EXIT_SUCCESS
        except SystemExit as e:
            return int(e.code) if isinstance(e.code, int) else EXIT_EXECUTION_ERROR
        except Exception as e:
            Logger.error(f"unexpected error: {e}")
            return EXIT_EXECUTION_ERROR

    def _process_single_repo(self, repo: RepositoryIdentifier) -> MigrationOutcome:
        try:
            return migrate(self.gh, repo, self.cfg.migration)
        except Exception as e:
            Logger.error(f"{repo}: unexpected error: {e}")
            return MigrationOutcome(
                repo=repo, kind=OutcomeKind.FAILED, step="unexpected", cause=e
            )

    def _log_summary(self) -> None:
        counts = Counter(outcome.kind for outcome in self.outcomes)
        completed = sum(1 for outcome in self.outcomes if outcome.completed)
        prefix = "dry-run " if self.cfg.migration.dry_run else ""
        Logger.info(
            f"{prefix}summary: {completed} completed, "
            f"{counts[OutcomeKind.SKIPPED_MISSING_OLD_BRANCH]} skipped, "
            f"{counts[OutcomeKind.FAILED]} failed"
        )
        for outcome in self.outcomes:
            line = f"  {outcome.repo}: {outcome.summary_line()}"
            if outcome.kind == OutcomeKind.FAILED:
                Logger.error(line)
            else:
                Logger.info(line)
