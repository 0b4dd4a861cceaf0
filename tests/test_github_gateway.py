"""Tests for GitHubGateway call translation."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import github
import pytest
import requests

from config import GitHubConfig, RepositoryIdentifier
from github_gateway import (BranchNotFoundError, GatewayError, GitHubGateway,
                            PullRequestRef)

REPO = RepositoryIdentifier('octo', 'demo')
PROTECTION_URL = 'https://api.github.com/repos/octo/demo/branches/release%2F1.x/protection'


def _make_gateway() -> GitHubGateway:
    gateway = GitHubGateway(GitHubConfig(api_url='https://api.github.com', token='token-value'))
    gateway.api = MagicMock()
    gateway.rate_limiter.wait_if_needed = lambda *_args, **_kwargs: None
    return gateway


def _response(status_code: int, body=None) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.reason = 'reason'
    response.json.return_value = body if body is not None else {}
    return response


def test_get_branch_head_returns_commit_sha() -> None:
    gateway = _make_gateway()
    repo = gateway.api.get_repo.return_value
    repo.get_branch.return_value.commit.sha = 'abc123'

    assert gateway.get_branch_head(REPO, 'master') == 'abc123'
    gateway.api.get_repo.assert_called_once_with('octo/demo', lazy=True)
    repo.get_branch.assert_called_once_with('master')


def test_missing_branch_raises_branch_not_found() -> None:
    gateway = _make_gateway()
    gateway.api.get_repo.return_value.get_branch.side_effect = github.UnknownObjectException(
        404, {'message': 'Branch not found'}, None
    )

    with pytest.raises(BranchNotFoundError):
        gateway.get_branch_head(REPO, 'master')


def test_missing_repository_is_not_a_missing_branch() -> None:
    gateway = _make_gateway()
    gateway.api.get_repo.return_value.get_branch.side_effect = github.UnknownObjectException(
        404, {'message': 'Not Found'}, None
    )

    with pytest.raises(GatewayError) as excinfo:
        gateway.get_branch_head(REPO, 'master')

    assert not isinstance(excinfo.value, BranchNotFoundError)
    assert excinfo.value.status == 404


def test_rate_limit_is_a_gateway_error() -> None:
    gateway = _make_gateway()
    gateway.api.get_repo.return_value.create_git_ref.side_effect = (
        github.RateLimitExceededException(403, {'message': 'API rate limit exceeded'}, None)
    )

    with pytest.raises(GatewayError) as excinfo:
        gateway.create_branch(REPO, 'main', 'abc123')

    assert 'rate limit' in str(excinfo.value)


def test_create_and_delete_branch_use_heads_refs() -> None:
    gateway = _make_gateway()
    repo = gateway.api.get_repo.return_value

    gateway.create_branch(REPO, 'main', 'abc123')
    gateway.delete_branch(REPO, 'master')

    repo.create_git_ref.assert_called_once_with(ref='refs/heads/main', sha='abc123')
    repo.get_git_ref.assert_called_once_with('heads/master')
    repo.get_git_ref.return_value.delete.assert_called_once()


def test_list_open_pull_requests() -> None:
    gateway = _make_gateway()
    repo = gateway.api.get_repo.return_value
    repo.get_pulls.return_value = [
        SimpleNamespace(number=7, base=SimpleNamespace(ref='master')),
        SimpleNamespace(number=9, base=SimpleNamespace(ref='develop')),
    ]

    pulls = gateway.list_open_pull_requests(REPO)

    repo.get_pulls.assert_called_once_with(state='open')
    assert pulls == [PullRequestRef(7, 'master'), PullRequestRef(9, 'develop')]


def test_retarget_and_default_branch() -> None:
    gateway = _make_gateway()
    repo = gateway.api.get_repo.return_value
    repo.full_name = 'octo/demo'
    repo.default_branch = 'master'
    repo.archived = False

    gateway.retarget_pull_request(REPO, 7, 'main')
    metadata = gateway.get_repository_metadata(REPO)
    gateway.set_default_branch(REPO, 'main')

    repo.get_pull.assert_called_once_with(7)
    repo.get_pull.return_value.edit.assert_called_once_with(base='main')
    assert metadata.default_branch == 'master'
    repo.edit.assert_called_once_with(default_branch='main')


@patch('github_gateway.requests.get')
def test_unprotected_branch_returns_none(mock_get: MagicMock) -> None:
    gateway = _make_gateway()
    mock_get.return_value = _response(404, {'message': 'Branch not protected'})

    assert gateway.get_branch_protection(REPO, 'release/1.x') is None
    assert mock_get.call_args.args[0] == PROTECTION_URL


@patch('github_gateway.requests.get')
def test_protection_read_error_raises(mock_get: MagicMock) -> None:
    gateway = _make_gateway()
    mock_get.return_value = _response(403, {'message': 'Upgrade to GitHub Pro'})

    with pytest.raises(GatewayError) as excinfo:
        gateway.get_branch_protection(REPO, 'master')

    assert excinfo.value.status == 403


@patch('github_gateway.requests.get')
def test_network_error_is_a_gateway_error(mock_get: MagicMock) -> None:
    gateway = _make_gateway()
    mock_get.side_effect = requests.ConnectionError('connection reset')

    with pytest.raises(GatewayError):
        gateway.get_branch_protection(REPO, 'master')


@patch('github_gateway.requests.post')
@patch('github_gateway.requests.put')
def test_set_branch_protection_puts_update_payload(mock_put: MagicMock, mock_post: MagicMock) -> None:
    gateway = _make_gateway()
    mock_put.return_value = _response(200)
    mock_post.return_value = _response(200)
    rules = {
        'url': 'https://api.github.com/repos/octo/demo/branches/master/protection',
        'enforce_admins': {'url': '...', 'enabled': True},
        'required_signatures': {'url': '...', 'enabled': True},
    }

    gateway.set_branch_protection(REPO, 'release/1.x', rules)

    assert mock_put.call_args.args[0] == PROTECTION_URL
    payload = mock_put.call_args.kwargs['json']
    assert payload['enforce_admins'] is True
    assert 'url' not in payload
    assert mock_post.call_args.args[0] == f'{PROTECTION_URL}/required_signatures'


@patch('github_gateway.requests.put')
def test_set_branch_protection_failure(mock_put: MagicMock) -> None:
    gateway = _make_gateway()
    mock_put.return_value = _response(422, {'message': 'Validation Failed'})

    with pytest.raises(GatewayError) as excinfo:
        gateway.set_branch_protection(REPO, 'main', {})

    assert excinfo.value.status == 422
    assert 'Validation Failed' in str(excinfo.value)


@patch('github_gateway.requests.get')
def test_connect_rejects_invalid_credentials(mock_get: MagicMock) -> None:
    gateway = GitHubGateway(GitHubConfig(api_url='https://api.github.com', token='bad'))
    mock_get.return_value = _response(401)

    with pytest.raises(SystemExit) as excinfo:
        gateway.connect()

    assert excinfo.value.code == 40


@patch('github_gateway.requests.get')
def test_protection_404_without_not_protected_message_raises(mock_get: MagicMock) -> None:
    """A plain 404 means no admin access or no repository, not an unprotected branch."""
    gateway = _make_gateway()
    mock_get.return_value = _response(404, {'message': 'Not Found'})

    with pytest.raises(GatewayError) as excinfo:
        gateway.get_branch_protection(REPO, 'master')

    assert excinfo.value.status == 404
    assert 'Not Found' in str(excinfo.value)


@patch('github_gateway.requests.get')
def test_protection_body_that_is_not_an_object_raises(mock_get: MagicMock) -> None:
    gateway = _make_gateway()
    mock_get.return_value = _response(200, ['unexpected'])

    with pytest.raises(GatewayError) as excinfo:
        gateway.get_branch_protection(REPO, 'master')

    assert 'malformed response' in str(excinfo.value)


@patch('github_gateway.requests.get')
def test_protection_body_that_is_not_json_raises(mock_get: MagicMock) -> None:
    gateway = _make_gateway()
    response = _response(200)
    response.json.side_effect = ValueError('Expecting value')
    mock_get.return_value = response

    with pytest.raises(GatewayError):
        gateway.get_branch_protection(REPO, 'master')


@patch('github_gateway.requests.put')
def test_set_branch_protection_with_incomplete_rules_raises(mock_put: MagicMock) -> None:
    gateway = _make_gateway()
    rules = {'required_status_checks': {'strict': True, 'checks': [{'app_id': 1}]}}

    with pytest.raises(GatewayError) as excinfo:
        gateway.set_branch_protection(REPO, 'main', rules)

    assert excinfo.value.operation == "set protection for 'main'"
    mock_put.assert_not_called()


@patch('github_gateway.requests.delete')
def test_remove_branch_protection_deletes_rules(mock_delete: MagicMock) -> None:
    gateway = _make_gateway()
    mock_delete.return_value = _response(204)

    gateway.remove_branch_protection(REPO, 'release/1.x')

    assert mock_delete.call_args.args[0] == PROTECTION_URL


@patch('github_gateway.requests.delete')
def test_remove_branch_protection_failure(mock_delete: MagicMock) -> None:
    gateway = _make_gateway()
    mock_delete.return_value = _response(403, {'message': 'Must have admin rights to Repository.'})

    with pytest.raises(GatewayError) as excinfo:
        gateway.remove_branch_protection(REPO, 'master')

    assert excinfo.value.status == 403
