#!/usr/bin/env python3
"""GitHub API wrapper exposing the per-repository operations of a rename."""

from __future__ import annotations

import sys
from contextlib import contextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Optional
from urllib.parse import quote

import github
import requests

if TYPE_CHECKING:
    from github.Repository import Repository

from branch_protection import protection_update_payload, requires_signatures
from config import GitHubConfig, RepositoryIdentifier
from logging_utils import Logger
from utils import RateLimiter

# Exit codes
EXIT_AUTH_ERROR = 40
EXIT_GITHUB_ERROR = 31

PUBLIC_API_URL = "https://api.github.com"


class GatewayError(Exception):
    """A GitHub API call failed."""

    def __init__(self, operation: str, status: Optional[int], message: str) -> None:
        self.operation = operation
        self.status = status
        self.message = message
        detail = f"{operation}: {message}"
        if status is not None:
            detail = f"{operation}: {status} {message}"
        super().__init__(detail)


class BranchNotFoundError(GatewayError):
    """The requested branch does not exist in the repository."""


@dataclass(frozen=True)
class PullRequestRef:
    number: int
    base_ref: str


@dataclass(frozen=True)
class RepositoryMetadata:
    full_name: str
    default_branch: str
    archived: bool = False


def _github_message(error: github.GithubException) -> str:
    if isinstance(error.data, dict) and error.data.get("message"):
        return str(error.data["message"])
    return str(error)


@contextmanager
def _translate_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except github.GithubException as e:
        raise GatewayError(operation, e.status, _github_message(e)) from e
    except requests.RequestException as e:
        raise GatewayError(operation, None, str(e)) from e
    except (KeyError, ValueError) as e:
        raise GatewayError(operation, None, f"malformed response: {e!r}") from e


class GitHubGateway:
    """Thin wrapper over PyGithub and the REST API for a single token."""

    def __init__(self, config: GitHubConfig) -> None:
        self.config = config
        self.api: Optional[github.Github] = None
        self.rate_limiter = RateLimiter(max_requests_per_minute=50)

    def connect(self) -> None:
        Logger.info(f"init github API: {self.config.api_url}")
        try:
            auth = github.Auth.Token(self.config.token)
            # Failures surface immediately; nothing is retried behind our back
            if self.config.api_url != PUBLIC_API_URL:
                self.api = github.Github(
                    base_url=self.config.api_url, auth=auth, retry=None
                )
            else:
                self.api = github.Github(auth=auth, retry=None)
            self._preflight_token()
        except github.BadCredentialsException:
            Logger.error("authentication failed (github): invalid credentials")
            sys.exit(EXIT_AUTH_ERROR)
        except github.GithubException as e:
            Logger.error(f"github error: {e}")
            sys.exit(EXIT_GITHUB_ERROR)

    def _get_api_headers(self) -> dict:
        """Get standard API headers for GitHub requests."""
        return {
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {self.config.token}",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    def _preflight_token(self) -> None:
        """Check that the credentials are accepted before touching any repo."""
        url = f"{self.config.api_url}/user"
        try:
            self.rate_limiter.wait_if_needed("GitHub API")
            response = requests.get(url, headers=self._get_api_headers(), timeout=30)
        except requests.RequestException as e:
            Logger.error(f"failed to contact github api: {e}")
            sys.exit(EXIT_GITHUB_ERROR)

        if response.status_code == 401:
            Logger.error(
                "unauthorized (401): credentials invalid or not authorized for GitHub API"
            )
            sys.exit(EXIT_AUTH_ERROR)
        if response.status_code != 200:
            Logger.error(f"unexpected response checking credentials: {response.status_code}")
            sys.exit(EXIT_GITHUB_ERROR)

        Logger.info(f"authenticated as: {response.json().get('login')}")
        scopes = response.headers.get("X-OAuth-Scopes")
        if scopes is not None:
            Logger.debug(f"granted scopes: {scopes or '(none)'}")

    def _repo(self, repo: RepositoryIdentifier, lazy: bool = True) -> "Repository":
        if self.api is None:
            Logger.error("github API not initialized")
            sys.exit(EXIT_GITHUB_ERROR)
        self.rate_limiter.wait_if_needed("GitHub API")
        return self.api.get_repo(repo.full_name, lazy=lazy)

    def _protection_url(self, repo: RepositoryIdentifier, branch: str) -> str:
        return (
            f"{self.config.api_url}/repos/{repo.full_name}"
            f"/branches/{quote(branch, safe='')}/protection"
        )

    def get_branch_head(self, repo: RepositoryIdentifier, branch: str) -> str:
        operation = f"get branch '{branch}'"
        try:
            with _translate_errors(operation):
                return self._repo(repo).get_branch(branch).commit.sha
        except GatewayError as e:
            # A missing repository is also a 404, but with a generic message
            if e.status == 404 and "branch" in e.message.lower():
                raise BranchNotFoundError(operation, e.status, e.message) from e
            raise

    def create_branch(self, repo: RepositoryIdentifier, branch: str, sha: str) -> None:
        with _translate_errors(f"create branch '{branch}'"):
            target = self._repo(repo)
            self.rate_limiter.wait_if_needed("GitHub API")
            target.create_git_ref(ref=f"refs/heads/{branch}", sha=sha)

    def delete_branch(self, repo: RepositoryIdentifier, branch: str) -> None:
        with _translate_errors(f"delete branch '{branch}'"):
            target = self._repo(repo)
            self.rate_limiter.wait_if_needed("GitHub API")
            ref = target.get_git_ref(f"heads/{branch}")
            self.rate_limiter.wait_if_needed("GitHub API")
            ref.delete()

    def list_open_pull_requests(self, repo: RepositoryIdentifier) -> List[PullRequestRef]:
        pulls: List[PullRequestRef] = []
        with _translate_errors("list open pull requests"):
            for pr in self._repo(repo).get_pulls(state="open"):
                pulls.append(PullRequestRef(number=pr.number, base_ref=pr.base.ref))
        return pulls

    def retarget_pull_request(
        self, repo: RepositoryIdentifier, number: int, new_base: str
    ) -> None:
        with _translate_errors(f"retarget pull request #{number}"):
            target = self._repo(repo)
            self.rate_limiter.wait_if_needed("GitHub API")
            pull = target.get_pull(number)
            self.rate_limiter.wait_if_needed("GitHub API")
            pull.edit(base=new_base)

    def get_repository_metadata(self, repo: RepositoryIdentifier) -> RepositoryMetadata:
        with _translate_errors("get repository"):
            target = self._repo(repo, lazy=False)
            return RepositoryMetadata(
                full_name=target.full_name,
                default_branch=target.default_branch,
                archived=bool(target.archived),
            )

    def set_default_branch(self, repo: RepositoryIdentifier, branch: str) -> None:
        with _translate_errors(f"set default branch '{branch}'"):
            target = self._repo(repo, lazy=False)
            self.rate_limiter.wait_if_needed("GitHub API")
            target.edit(default_branch=branch)

    def get_branch_protection(
        self, repo: RepositoryIdentifier, branch: str
    ) -> Optional[Dict[str, Any]]:
        """Return the protection applied to ``branch``, or None if unprotected."""
        operation = f"get protection for '{branch}'"
        with _translate_errors(operation):
            self.rate_limiter.wait_if_needed("GitHub API")
            response = requests.get(
                self._protection_url(repo, branch),
                headers=self._get_api_headers(),
                timeout=30,
            )
            if response.status_code == 404:
                # No admin rights or a missing repository are also 404s
                if "not protected" in self._error_message(response).lower():
                    return None
            self._raise_for_status(operation, response)
            rules = response.json()
            if not isinstance(rules, dict):
                raise ValueError(f"unexpected protection body: {rules!r}")
            return rules

    def set_branch_protection(
        self, repo: RepositoryIdentifier, branch: str, rules: Dict[str, Any]
    ) -> None:
        operation = f"set protection for '{branch}'"
        url = self._protection_url(repo, branch)
        with _translate_errors(operation):
            self.rate_limiter.wait_if_needed("GitHub API")
            response = requests.put(
                url,
                headers=self._get_api_headers(),
                json=protection_update_payload(rules),
                timeout=30,
            )
            self._raise_for_status(operation, response)

            if requires_signatures(rules):
                self.rate_limiter.wait_if_needed("GitHub API")
                response = requests.post(
                    f"{url}/required_signatures",
                    headers=self._get_api_headers(),
                    timeout=30,
                )
                self._raise_for_status(f"{operation} (required signatures)", response)

    def remove_branch_protection(self, repo: RepositoryIdentifier, branch: str) -> None:
        operation = f"remove protection from '{branch}'"
        with _translate_errors(operation):
            self.rate_limiter.wait_if_needed("GitHub API")
            response = requests.delete(
                self._protection_url(repo, branch),
                headers=self._get_api_headers(),
                timeout=30,
            )
            self._raise_for_status(operation, response)

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return str(response.reason)
        if isinstance(body, dict) and body.get("message"):
            return str(body["message"])
        return str(response.reason)

    @classmethod
    def _raise_for_status(cls, operation: str, response: requests.Response) -> None:
        if 200 <= response.status_code < 300:
            return
        raise GatewayError(operation, response.status_code, cls._error_message(response))
