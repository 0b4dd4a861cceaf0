#!/usr/bin/env python3
"""
Rename Primary Branch - rename the primary branch of one or many GitHub
repositories, e.g. from master to main.

For every selected repository the new branch is created at the head of
the old one, open pull requests are retargeted, the default branch is
switched, branch protection is copied and finally the old branch is
deleted. A failure in one repository does not stop the others, and the
whole run can be previewed with --dry-run.

Copyright (c) 2025 rename-primary-branch contributors
Licensed under the MIT License. See LICENSE file for details.

License: MIT
"""

from __future__ import annotations

import sys
from typing import NoReturn

from argument_parser import parse_arguments
from rename_orchestrator import RenameOrchestrator

# Exit codes
EXIT_SUCCESS = 0
EXIT_EXECUTION_ERROR = 1


def main() -> NoReturn:
    if __name__ != "__main__":
        sys.exit(EXIT_EXECUTION_ERROR)

    cfg = parse_arguments()
    orchestrator = RenameOrchestrator(cfg)
    sys.exit(orchestrator.run())


if __name__ == "__main__":
    main()
