#!/usr/bin/env python3
"""Configuration dataclasses for rename-primary-branch."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class RepositoryIdentifier:
    """An ``owner/name`` pair identifying a repository on GitHub."""
    owner: str
    name: str

    @classmethod
    def parse(cls, full_name: str) -> "RepositoryIdentifier":
        parts = full_name.split("/")
        if len(parts) != 2 or not all(parts):
            raise ValueError(
                f"repository must be given as owner/name, got '{full_name}'"
            )
        return cls(owner=parts[0], name=parts[1])

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    def __str__(self) -> str:
        return self.full_name


@dataclass(frozen=True)
class MigrationConfig:
    """Per-run rename settings, shared read-only by every repository."""
    old_branch: str
    new_branch: str
    dry_run: bool = False
    keep_old_branch: bool = False
    skip_branch_protection: bool = False
    verbose: bool = False


@dataclass
class SelectionConfig:
    """Which repositories to process.

    Exactly one mode is set: ``repo`` alone, ``owner`` alone, ``org``
    alone, or ``org`` together with ``team``.
    """
    repo: Optional[RepositoryIdentifier] = None
    owner: Optional[str] = None
    org: Optional[str] = None
    team: Optional[str] = None
    exclude: Optional[str] = None
    include_archived: bool = False


@dataclass
class GitHubConfig:
    """GitHub-specific configuration."""
    api_url: str
    token: str


@dataclass
class Config:
    """Main configuration for a rename run."""
    github: GitHubConfig
    selection: SelectionConfig
    migration: MigrationConfig
    confirmed: bool = False
