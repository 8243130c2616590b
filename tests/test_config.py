import logging

import pytest
from pydantic import ValidationError

from ptm_explorer.config import Settings
from ptm_explorer.core.logging import LOG_FILE_NAME, setup_logging


def test_default_window_radius():
    assert Settings().WINDOW_RADIUS_DEFAULT == 7


@pytest.mark.parametrize("radius", [0, 21, 25])
def test_window_radius_outside_range_is_rejected(radius):
    with pytest.raises(ValidationError):
        Settings(WINDOW_RADIUS_DEFAULT=radius)


def test_window_radius_from_environment(monkeypatch):
    monkeypatch.setenv("WINDOW_RADIUS_DEFAULT", "25")
    with pytest.raises(ValidationError):
        Settings()


def test_setup_logging_uses_given_settings(tmp_path):
    settings = Settings(LOG_DIR=str(tmp_path / "logs"), APP_ENV="production")
    root = logging.getLogger()
    try:
        setup_logging(settings)
        setup_logging(settings)

        log_file = (tmp_path / "logs" / LOG_FILE_NAME).resolve()
        handlers = [
            h for h in root.handlers
            if isinstance(h, logging.FileHandler) and h.baseFilename == str(log_file)
        ]
        assert len(handlers) == 1
        assert log_file.exists()
        assert handlers[0].formatter._fmt.startswith('{"time"')
    finally:
        for h in list(root.handlers):
            if isinstance(h, logging.FileHandler) and str(tmp_path) in h.baseFilename:
                root.removeHandler(h)
                h.close()
