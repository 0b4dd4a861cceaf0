#!/usr/bin/env python3
"""Per-repository rename of the primary branch.

A rename is a fixed sequence of dependent steps against one repository:

1. resolve the head commit of the old branch (missing branch: skip repo)
2. create the new branch at that commit
3. retarget open pull requests based on the old branch
4. move the default branch, if it still points at the old branch
5. copy branch protection from the old branch to the new one
6. delete the old branch, dropping its protection first

Reads always run so that a dry run reports exactly what would change;
writes are suppressed under dry run. The first failing step ends the run
for that repository. Nothing is rolled back: the outcome records the step
that failed and everything before it stays applied.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional

from config import MigrationConfig, RepositoryIdentifier
from github_gateway import BranchNotFoundError, GatewayError, GitHubGateway
from logging_utils import Logger

STEP_RESOLVE_OLD_BRANCH = "resolve-old-branch"
STEP_CREATE_BRANCH = "create-branch"
STEP_RETARGET_PULL_REQUESTS = "retarget-pull-requests"
STEP_UPDATE_DEFAULT_BRANCH = "update-default-branch"
STEP_MIGRATE_BRANCH_PROTECTION = "migrate-branch-protection"
STEP_DELETE_OLD_BRANCH = "delete-old-branch"


class OutcomeKind(Enum):
    MIGRATED = "migrated"
    SKIPPED_MISSING_OLD_BRANCH = "skipped-missing-old-branch"
    SKIPPED_DEFAULT_BRANCH_MISMATCH = "skipped-default-branch-mismatch"
    FAILED = "failed"


class BranchConflictError(Exception):
    """The new branch already exists and points at a different commit."""


@dataclass
class MigrationOutcome:
    """Result of renaming the primary branch of one repository."""
    repo: RepositoryIdentifier
    kind: OutcomeKind = OutcomeKind.MIGRATED
    step: Optional[str] = None
    cause: Optional[Exception] = None
    old_head: Optional[str] = None
    default_branch: Optional[str] = None
    retargeted_pull_requests: List[int] = field(default_factory=list)
    new_branch_created: bool = False
    default_branch_changed: bool = False
    protection_migrated: bool = False
    old_branch_deleted: bool = False

    @property
    def completed(self) -> bool:
        return self.kind in (
            OutcomeKind.MIGRATED,
            OutcomeKind.SKIPPED_DEFAULT_BRANCH_MISMATCH,
        )

    def summary_line(self) -> str:
        if self.kind == OutcomeKind.SKIPPED_MISSING_OLD_BRANCH:
            return "skipped (no old branch)"
        if self.kind == OutcomeKind.SKIPPED_DEFAULT_BRANCH_MISMATCH:
            return f"completed (default branch left as '{self.default_branch}')"
        if self.kind == OutcomeKind.FAILED:
            return f"failed at step {self.step}: {self.cause}"
        return "completed"


class _StepFailed(Exception):
    def __init__(self, step: str, cause: Exception) -> None:
        super().__init__(f"{step}: {cause}")
        self.step = step
        self.cause = cause


class _RepositoryRename:
    """Running state of one repository's rename."""

    def __init__(
        self,
        gateway: GitHubGateway,
        repo: RepositoryIdentifier,
        config: MigrationConfig,
    ) -> None:
        self.gateway = gateway
        self.repo = repo
        self.config = config
        self.outcome = MigrationOutcome(repo=repo)
        self.old_protection: Optional[Dict[str, Any]] = None

    @contextmanager
    def _step(self, name: str) -> Iterator[None]:
        Logger.debug(f"{self.repo}: step {name}")
        try:
            yield
        except (GatewayError, BranchConflictError) as e:
            raise _StepFailed(name, e) from e

    def _would(self, action: str) -> None:
        Logger.info(f"{self.repo}: [dry-run] would {action}")

    def run(self) -> MigrationOutcome:
        old, new = self.config.old_branch, self.config.new_branch
        Logger.info(f"{self.repo}: renaming '{old}' -> '{new}'")
        try:
            head = self._resolve_old_branch()
            if head is None:
                self.outcome.kind = OutcomeKind.SKIPPED_MISSING_OLD_BRANCH
                Logger.warn(f"{self.repo}: branch '{old}' not found, skipping")
                return self.outcome
            self._create_branch(head)
            self._retarget_pull_requests()
            self._update_default_branch()
            self._migrate_branch_protection()
            self._delete_old_branch()
        except _StepFailed as failure:
            self.outcome.kind = OutcomeKind.FAILED
            self.outcome.step = failure.step
            self.outcome.cause = failure.cause
            Logger.error(
                f"{self.repo}: failed at step {failure.step}: {failure.cause}"
            )
            return self.outcome

        Logger.info(f"{self.repo}: {self.outcome.summary_line()}")
        return self.outcome

    def _resolve_old_branch(self) -> Optional[str]:
        with self._step(STEP_RESOLVE_OLD_BRANCH):
            try:
                head = self.gateway.get_branch_head(self.repo, self.config.old_branch)
            except BranchNotFoundError:
                return None
        self.outcome.old_head = head
        Logger.debug(f"{self.repo}: '{self.config.old_branch}' is at {head}")
        return head

    def _create_branch(self, head: str) -> None:
        new = self.config.new_branch
        with self._step(STEP_CREATE_BRANCH):
            try:
                existing = self.gateway.get_branch_head(self.repo, new)
            except BranchNotFoundError:
                existing = None

            if existing == head:
                Logger.info(f"{self.repo}: branch '{new}' already exists at {head}")
                return
            if existing is not None:
                raise BranchConflictError(
                    f"branch '{new}' already exists at {existing}, expected {head}"
                )

            if self.config.dry_run:
                self._would(f"create branch '{new}' at {head}")
                return
            self.gateway.create_branch(self.repo, new, head)
        self.outcome.new_branch_created = True
        Logger.info(f"{self.repo}: created branch '{new}' at {head}")

    def _retarget_pull_requests(self) -> None:
        old, new = self.config.old_branch, self.config.new_branch
        with self._step(STEP_RETARGET_PULL_REQUESTS):
            pulls = self.gateway.list_open_pull_requests(self.repo)
            matching = [pr for pr in pulls if pr.base_ref == old]
            Logger.debug(
                f"{self.repo}: {len(pulls)} open pull requests, "
                f"{len(matching)} based on '{old}'"
            )
            for pr in matching:
                if self.config.dry_run:
                    self._would(f"retarget pull request #{pr.number} to '{new}'")
                    continue
                self.gateway.retarget_pull_request(self.repo, pr.number, new)
                self.outcome.retargeted_pull_requests.append(pr.number)
                Logger.info(f"{self.repo}: retargeted pull request #{pr.number} to '{new}'")

    def _update_default_branch(self) -> None:
        old, new = self.config.old_branch, self.config.new_branch
        with self._step(STEP_UPDATE_DEFAULT_BRANCH):
            metadata = self.gateway.get_repository_metadata(self.repo)
            self.outcome.default_branch = metadata.default_branch
            if metadata.default_branch != old:
                self.outcome.kind = OutcomeKind.SKIPPED_DEFAULT_BRANCH_MISMATCH
                Logger.warn(
                    f"{self.repo}: default branch is '{metadata.default_branch}', "
                    f"not '{old}'; leaving it unchanged"
                )
                return
            if self.config.dry_run:
                self._would(f"change default branch from '{old}' to '{new}'")
                return
            self.gateway.set_default_branch(self.repo, new)
        self.outcome.default_branch_changed = True
        Logger.info(f"{self.repo}: default branch set to '{new}'")

    def _migrate_branch_protection(self) -> None:
        old, new = self.config.old_branch, self.config.new_branch
        if self.config.skip_branch_protection:
            Logger.debug(f"{self.repo}: skipping branch protection")
            return
        with self._step(STEP_MIGRATE_BRANCH_PROTECTION):
            rules = self.gateway.get_branch_protection(self.repo, old)
            self.old_protection = rules
            if rules is None:
                Logger.debug(f"{self.repo}: '{old}' has no branch protection")
                return
            Logger.debug(f"{self.repo}: protection of '{old}': {rules}")
            if self.config.dry_run:
                self._would(f"copy branch protection from '{old}' to '{new}'")
                return
            self.gateway.set_branch_protection(self.repo, new, rules)
        self.outcome.protection_migrated = True
        Logger.info(f"{self.repo}: branch protection copied to '{new}'")

    def _delete_old_branch(self) -> None:
        old = self.config.old_branch
        if self.config.keep_old_branch:
            Logger.info(f"{self.repo}: keeping branch '{old}'")
            return
        with self._step(STEP_DELETE_OLD_BRANCH):
            # GitHub refuses to delete a protected branch
            if self.config.dry_run:
                if self.old_protection is not None:
                    self._would(f"remove branch protection from '{old}'")
                self._would(f"delete branch '{old}'")
                return
            if self.old_protection is not None:
                self.gateway.remove_branch_protection(self.repo, old)
                Logger.debug(f"{self.repo}: removed branch protection from '{old}'")
            self.gateway.delete_branch(self.repo, old)
        self.outcome.old_branch_deleted = True
        Logger.info(f"{self.repo}: deleted branch '{old}'")


def migrate(
    gateway: GitHubGateway,
    repo: RepositoryIdentifier,
    config: MigrationConfig,
) -> MigrationOutcome:
    """Rename the primary branch of ``repo`` and report how far it got."""
    return _RepositoryRename(gateway, repo, config).run()
