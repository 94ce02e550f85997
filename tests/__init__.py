"""Tests for VSTS Provisioner.

Test Structure:
    tests/
    ├── conftest.py          # Shared pytest fixtures
    ├── unit/                # Unit tests (no external deps, any platform)
    │   ├── test_autologon.py
    │   ├── test_cli.py
    │   ├── test_client.py
    │   ├── test_config.py
    │   ├── test_error_handling.py
    │   ├── test_provisioner.py
    │   ├── test_request.py
    │   ├── test_toolchain.py
    │   └── test_watcher.py
    └── mocks/               # Fake endpoints, backends and runners
        └── fakes.py

Usage:
    # Run all tests
    pytest

    # Run only unit tests
    pytest -m unit

    # Run with verbose output
    pytest -v
"""
