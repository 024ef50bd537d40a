"""
tests/test_request_logging.py -- The request logging middleware in api/main.py.

Covers:
  - a completed request is logged with method, path and status
  - a request whose handler raises is still logged, as 500
"""

from __future__ import annotations

import logging
from unittest.mock import patch

import pytest


def _access_lines(caplog) -> list[str]:
    return [r.getMessage() for r in caplog.records if r.name == "ariacreative.api"]


def test_completed_request_is_logged(api_client, caplog) -> None:
    client, _, _ = api_client
    with caplog.at_level(logging.INFO, logger="ariacreative.api"):
        assert client.get("/api/v1/projects").status_code == 200
    assert any(line.startswith("GET /api/v1/projects 200 ") for line in _access_lines(caplog))


def test_failing_request_is_logged_as_500(api_client, caplog) -> None:
    client, _, _ = api_client
    portfolio = client.app.state.portfolio
    with patch.object(portfolio, "list_projects", side_effect=RuntimeError("database unavailable")):
        with caplog.at_level(logging.INFO, logger="ariacreative.api"):
            with pytest.raises(RuntimeError):
                client.get("/api/v1/projects")
    assert any(line.startswith("GET /api/v1/projects 500 ") for line in _access_lines(caplog))
