#!/usr/bin/env python3
"""Command line argument parsing and configuration building."""

from __future__ import annotations

import argparse
import os
import sys
from typing import List, Optional

from config import (Config, GitHubConfig, MigrationConfig, RepositoryIdentifier,
                    SelectionConfig)
from logging_utils import Logger
from security import SecurityValidator

# Exit codes
EXIT_AUTH_ERROR = 40
EXIT_MISSING_ARGUMENTS = 2


def _create_argument_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser."""
    parser = argparse.ArgumentParser(
        description="Rename the primary branch of GitHub repositories",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --repo octocat/hello-world
  %(prog)s --org acme --old master --new main --dry-run
  %(prog)s --org acme --team platform --keep-old --confirm
  %(prog)s --owner octocat --exclude archive- --skip-branch-protection
  %(prog)s --gh-api https://github.company.com/api/v3 --org team
        """,
    )
    return parser


def _add_github_arguments(parser: argparse.ArgumentParser) -> None:
    """Add GitHub connection arguments to parser."""
    parser.add_argument(
        "--gh-api",
        dest="gh_api_url",
        default="https://api.github.com",
        help="Base URL of the GitHub API",
    )
    parser.add_argument(
        "--token",
        dest="token",
        help="GitHub API token (or set GITHUB_TOKEN env var)",
    )


def _add_selection_arguments(parser: argparse.ArgumentParser) -> None:
    """Add repository selection arguments to parser."""
    parser.add_argument(
        "--repo",
        dest="repo",
        help="Single repository to update, as owner/name",
    )
    parser.add_argument(
        "--owner",
        dest="owner",
        help="Update all repositories of this user",
    )
    parser.add_argument(
        "--org",
        dest="org",
        help="Update all repositories of this organization",
    )
    parser.add_argument(
        "--team",
        dest="team",
        help="With --org: only repositories of this team (slug)",
    )
    parser.add_argument(
        "-e",
        "--exclude",
        dest="exclude",
        help="Skip repositories whose owner/name contains this pattern",
    )
    parser.add_argument(
        "--include-archived",
        action="store_true",
        dest="include_archived",
        help="Also process archived repositories",
    )


def _add_behavior_arguments(parser: argparse.ArgumentParser) -> None:
    """Add rename behavior arguments to parser."""
    parser.add_argument(
        "--old",
        dest="old_branch",
        default="master",
        help="Name of the branch to rename (default: master)",
    )
    parser.add_argument(
        "--new",
        dest="new_branch",
        default="main",
        help="New name of the branch (default: main)",
    )
    parser.add_argument(
        "-d",
        "--dry-run",
        action="store_true",
        dest="dry_run",
        help="Report what would change without changing anything",
    )
    parser.add_argument(
        "--keep-old",
        action="store_true",
        dest="keep_old",
        help="Do not delete the old branch",
    )
    parser.add_argument(
        "--skip-branch-protection",
        action="store_true",
        dest="skip_branch_protection",
        help="Do not copy branch protection to the new branch",
    )
    parser.add_argument(
        "-y",
        "--confirm",
        action="store_true",
        dest="confirm",
        help="Do not ask for confirmation before making changes",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        dest="verbose",
        help="Show detailed progress",
    )


def _validate_selection(args) -> SelectionConfig:
    """Validate that exactly one repository selection mode is given."""
    modes: List[str] = [
        flag
        for flag, value in (("--repo", args.repo), ("--owner", args.owner), ("--org", args.org))
        if value
    ]
    if len(modes) != 1:
        raise ValueError("exactly one of --repo, --owner or --org is required")
    if args.team and not args.org:
        raise ValueError("--team can only be used together with --org")

    repo: Optional[RepositoryIdentifier] = None
    if args.repo:
        repo = RepositoryIdentifier.parse(args.repo)
        SecurityValidator.validate_username(repo.owner)
        SecurityValidator.validate_repo_name(repo.name)

    exclude = None
    if args.exclude:
        if len(args.exclude) > 100:
            raise ValueError("exclude pattern too long (max 100 characters)")
        exclude = args.exclude

    return SelectionConfig(
        repo=repo,
        owner=SecurityValidator.validate_username(args.owner) if args.owner else None,
        org=SecurityValidator.validate_username(args.org) if args.org else None,
        team=SecurityValidator.validate_username(args.team) if args.team else None,
        exclude=exclude,
        include_archived=args.include_archived,
    )


def _validate_parsed_arguments(args) -> tuple:
    """Validate parsed arguments; exits before any repository is touched."""
    try:
        api_url = SecurityValidator.validate_url(
            args.gh_api_url, ["https"]
        ).rstrip("/")
        selection = _validate_selection(args)
        old_branch = SecurityValidator.validate_branch_name(args.old_branch)
        new_branch = SecurityValidator.validate_branch_name(args.new_branch)
        if old_branch == new_branch:
            raise ValueError("old and new branch names must differ")

        Logger.security_event(
            "CONFIG_VALIDATION", "successfully validated all configuration inputs"
        )
        return api_url, selection, old_branch, new_branch

    except ValueError as e:
        Logger.security_event(
            "CONFIG_VALIDATION_FAILED", f"configuration validation failed: {e}"
        )
        Logger.error(f"configuration validation error: {e}")
        sys.exit(EXIT_MISSING_ARGUMENTS)


def _get_token(args) -> str:
    token = args.token or os.getenv("GITHUB_TOKEN")
    if not token:
        Logger.error("error: no github credentials (use --token or GITHUB_TOKEN)")
        sys.exit(EXIT_AUTH_ERROR)
    return token


def parse_arguments(argv: Optional[List[str]] = None) -> Config:
    """Parse command line arguments and return configuration object."""
    parser = _create_argument_parser()
    _add_github_arguments(parser)
    _add_selection_arguments(parser)
    _add_behavior_arguments(parser)

    args = parser.parse_args(argv)

    api_url, selection, old_branch, new_branch = _validate_parsed_arguments(args)
    token = _get_token(args)

    return Config(
        github=GitHubConfig(api_url=api_url, token=token),
        selection=selection,
        migration=MigrationConfig(
            old_branch=old_branch,
            new_branch=new_branch,
            dry_run=args.dry_run,
            keep_old_branch=args.keep_old,
            skip_branch_protection=args.skip_branch_protection,
            verbose=args.verbose,
        ),
        confirmed=args.confirm,
    )
