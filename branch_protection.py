#!/usr/bin/env python3
"""Conversion of branch protection rules between read and update shapes.

``GET /repos/{owner}/{repo}/branches/{branch}/protection`` returns toggles
as ``{"url": ..., "enabled": bool}`` objects and actors as full user/team/app
records, while ``PUT`` on the same endpoint expects plain booleans and
login/slug lists. Everything else is carried over unchanged. The branch a
rule applies to is part of the request URL, never of the payload.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

# Optional toggles accepted by the update endpoint
TOGGLE_FIELDS = (
    "required_linear_history",
    "allow_force_pushes",
    "allow_deletions",
    "block_creations",
    "required_conversation_resolution",
    "lock_branch",
    "allow_fork_syncing",
)

REVIEW_FIELDS = (
    "dismiss_stale_reviews",
    "require_code_owner_reviews",
    "required_approving_review_count",
    "require_last_push_approval",
)


def _enabled(value: Any) -> bool:
    if isinstance(value, dict):
        return bool(value.get("enabled", False))
    return bool(value)


def _names(entries: Optional[List[Any]], key: str) -> List[str]:
    names: List[str] = []
    for entry in entries or []:
        names.append(entry[key] if isinstance(entry, dict) else entry)
    return names


def _actors(value: Optional[Dict[str, Any]]) -> Optional[Dict[str, List[str]]]:
    if not value:
        return None
    return {
        "users": _names(value.get("users"), "login"),
        "teams": _names(value.get("teams"), "slug"),
        "apps": _names(value.get("apps"), "slug"),
    }


def _status_checks(value: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not value:
        return None
    payload: Dict[str, Any] = {"strict": bool(value.get("strict", False))}
    checks = value.get("checks")
    if checks:
        payload["checks"] = []
        for check in checks:
            entry = {"context": check["context"]}
            if check.get("app_id") is not None:
                entry["app_id"] = check["app_id"]
            payload["checks"].append(entry)
    else:
        payload["contexts"] = list(value.get("contexts") or [])
    return payload


def _pull_request_reviews(
    value: Optional[Dict[str, Any]],
) -> Optional[Dict[str, Any]]:
    if not value:
        return None
    payload: Dict[str, Any] = {
        field: value[field] for field in REVIEW_FIELDS if field in value
    }
    if "dismissal_restrictions" in value:
        payload["dismissal_restrictions"] = _actors(value["dismissal_restrictions"])
    if "bypass_pull_request_allowances" in value:
        payload["bypass_pull_request_allowances"] = _actors(
            value["bypass_pull_request_allowances"]
        )
    return payload


def protection_update_payload(rules: Dict[str, Any]) -> Dict[str, Any]:
    """Build a ``PUT .../protection`` body equivalent to a fetched rule set."""
    payload: Dict[str, Any] = {
        "required_status_checks": _status_checks(rules.get("required_status_checks")),
        "enforce_admins": _enabled(rules.get("enforce_admins")),
        "required_pull_request_reviews": _pull_request_reviews(
            rules.get("required_pull_request_reviews")
        ),
        "restrictions": _actors(rules.get("restrictions")),
    }
    for field in TOGGLE_FIELDS:
        if field in rules:
            payload[field] = _enabled(rules[field])
    return payload


def requires_signatures(rules: Dict[str, Any]) -> bool:
    """Signed-commit enforcement lives on its own endpoint."""
    return _enabled(rules.get("required_signatures"))
