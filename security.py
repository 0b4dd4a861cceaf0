#!/usr/bin/env python3
"""Security validation utilities for rename-primary-branch."""

import re
from typing import List, Optional


class SecurityValidator:
    """Input validation and log sanitization."""

    MAX_REPO_NAME_LENGTH = 100
    MAX_URL_LENGTH = 2048
    MAX_USERNAME_LENGTH = 100
    MAX_BRANCH_NAME_LENGTH = 255

    SAFE_REPO_NAME_PATTERN = re.compile(r"^[A-Za-z0-9._-]+$")
    SAFE_USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9._-]+$")
    # Characters git refuses in ref names (see git-check-ref-format)
    FORBIDDEN_BRANCH_CHARS = re.compile(r"[\s~^:?*\[\\]")

    @classmethod
    def validate_repo_name(cls, name: str) -> str:
        """Validate a repository name without rewriting it."""
        if not name or not isinstance(name, str):
            raise ValueError("Repository name must be a non-empty string")

        if len(name) > cls.MAX_REPO_NAME_LENGTH:
            raise ValueError(
                f"Repository name exceeds maximum length of {cls.MAX_REPO_NAME_LENGTH}"
            )

        if name in (".", ".."):
            raise ValueError("Repository name contains invalid path characters")

        if not cls.SAFE_REPO_NAME_PATTERN.match(name):
            raise ValueError("Repository name contains invalid characters")

        return name

    @classmethod
    def validate_url(cls, url: str, allowed_schemes: Optional[List[str]] = None) -> str:
        """Validate URL for security."""
        if not url or not isinstance(url, str):
            raise ValueError("URL must be a non-empty string")

        if len(url) > cls.MAX_URL_LENGTH:
            raise ValueError(f"URL exceeds maximum length of {cls.MAX_URL_LENGTH}")

        if "\x00" in url or any(ord(c) < 32 for c in url):
            raise ValueError("URL contains null bytes or control characters")

        if not url.startswith(("http://", "https://")):
            raise ValueError("URL must use http or https scheme")

        if allowed_schemes:
            scheme = url.split("://")[0].lower()
            if scheme not in allowed_schemes:
                raise ValueError(
                    f"URL scheme '{scheme}' not in allowed schemes: {allowed_schemes}"
                )

        return url

    @classmethod
    def validate_username(cls, username: str) -> str:
        """Validate a user, organization or team slug."""
        if not username or not isinstance(username, str):
            raise ValueError("Username must be a non-empty string")

        if len(username) > cls.MAX_USERNAME_LENGTH:
            raise ValueError(
                f"Username exceeds maximum length of {cls.MAX_USERNAME_LENGTH}"
            )

        if "\x00" in username or any(ord(c) < 32 for c in username):
            raise ValueError("Username contains null bytes or control characters")

        if not cls.SAFE_USERNAME_PATTERN.match(username):
            raise ValueError("Username contains invalid characters")

        return username

    @classmethod
    def validate_branch_name(cls, branch: str) -> str:
        """Validate a branch name against git's ref-name rules."""
        if not branch or not isinstance(branch, str):
            raise ValueError("Branch name must be a non-empty string")

        if len(branch) > cls.MAX_BRANCH_NAME_LENGTH:
            raise ValueError(
                f"Branch name exceeds maximum length of {cls.MAX_BRANCH_NAME_LENGTH}"
            )

        if any(ord(c) < 32 or ord(c) == 127 for c in branch):
            raise ValueError("Branch name contains control characters")

        if cls.FORBIDDEN_BRANCH_CHARS.search(branch):
            raise ValueError(f"Branch name contains invalid characters: {branch}")

        if ".." in branch or "@{" in branch or "//" in branch or branch == "@":
            raise ValueError(f"Branch name contains invalid sequence: {branch}")

        if branch.startswith(("-", "/")) or branch.endswith(("/", ".", ".lock")):
            raise ValueError(f"Branch name has invalid start or end: {branch}")

        if any(part.startswith(".") for part in branch.split("/")):
            raise ValueError(f"Branch name component starts with '.': {branch}")

        return branch

    @classmethod
    def sanitize_for_logging(cls, message: str) -> str:
        """Sanitize message for safe logging by removing potential credentials."""
        if not message:
            return message

        patterns = [
            (r"https://[^:/@]+:[^@]+@", "https://[REDACTED]@"),  # URLs with credentials
            (r"token\s*[=:]\s*[^\s]+", "token=[REDACTED]"),
            (r"bearer\s+[^\s]+", "Bearer [REDACTED]"),
            (r"github_pat_[A-Za-z0-9_]+", "[GITHUB_TOKEN_REDACTED]"),
            (r"gh[pousr]_[A-Za-z0-9_]+", "[GITHUB_TOKEN_REDACTED]"),
        ]

        sanitized = message
        for pattern, replacement in patterns:
            sanitized = re.sub(pattern, replacement, sanitized, flags=re.IGNORECASE)

        return sanitized
