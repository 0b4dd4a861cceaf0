#!/usr/bin/env python3
"""Resolve a user, org or team into the repositories to rename."""

from __future__ import annotations

import sys
from typing import Iterable, List, Set

import github

from config import RepositoryIdentifier, SelectionConfig
from logging_utils import Logger
from utils import RateLimiter

# Exit codes
EXIT_SELECTION_ERROR = 30


class RepositorySelector:
    """Lists repositories for one selection mode, in API order."""

    def __init__(self, api: github.Github, rate_limiter: RateLimiter) -> None:
        self.api = api
        self.rate_limiter = rate_limiter

    def select(self, selection: SelectionConfig) -> List[RepositoryIdentifier]:
        if selection.repo is not None:
            return [selection.repo]

        try:
            if selection.team:
                Logger.info(
                    f"discovering repositories of team: {selection.org}/{selection.team}"
                )
                self.rate_limiter.wait_if_needed("GitHub API")
                org = self.api.get_organization(selection.org)
                self.rate_limiter.wait_if_needed("GitHub API")
                repos = org.get_team_by_slug(selection.team).get_repos()
            elif selection.org:
                Logger.info(f"discovering repositories of org: {selection.org}")
                self.rate_limiter.wait_if_needed("GitHub API")
                repos = self.api.get_organization(selection.org).get_repos()
            else:
                Logger.info(f"discovering repositories of user: {selection.owner}")
                self.rate_limiter.wait_if_needed("GitHub API")
                repos = self.api.get_user(selection.owner).get_repos()

            selected = self._filter(repos, selection)
        except github.GithubException as e:
            Logger.error(f"failed to list repositories: {e}")
            sys.exit(EXIT_SELECTION_ERROR)

        Logger.info(f"found {len(selected)} repositories to process")
        return selected

    def _filter(
        self, repos: Iterable[object], selection: SelectionConfig
    ) -> List[RepositoryIdentifier]:
        seen: Set[str] = set()
        selected: List[RepositoryIdentifier] = []
        for repo in repos:
            full_name = getattr(repo, "full_name", "")
            if full_name in seen:
                continue
            seen.add(full_name)

            if not selection.include_archived and getattr(repo, "archived", False):
                Logger.debug(f"skipping archived: {full_name}")
                continue
            if selection.exclude and selection.exclude in full_name:
                Logger.warn(f"excluding: {full_name}")
                continue

            selected.append(RepositoryIdentifier.parse(full_name))
            Logger.debug(f"found: {full_name}")
        return selected
