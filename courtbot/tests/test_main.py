from __future__ import annotations

from unittest.mock import patch

import pytest

import main
from courtbot.config import Settings


def test_main_runs_one_cycle() -> None:
    settings = Settings()

    with (
        patch("main.load_settings", return_value=settings),
        patch("main.run_cycle") as run_cycle,
    ):
        assert main.main() == 0
        run_cycle.assert_called_once_with(settings)


def test_main_returns_zero_when_fetch_failed() -> None:
    # A failed fetch is reported by run_cycle returning None, not by raising.
    with (
        patch("main.load_settings", return_value=Settings()),
        patch("main.run_cycle", return_value=None),
    ):
        assert main.main() == 0


def test_main_reraises_unexpected_errors() -> None:
    with (
        patch("main.load_settings", return_value=Settings()),
        patch("main.run_cycle", side_effect=RuntimeError("boom")),
    ):
        with pytest.raises(RuntimeError):
            main.main()
