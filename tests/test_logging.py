import logging

import pytest

from keygate.api.main import create_app
from keygate.core.logging import setup_logging


@pytest.fixture(autouse=True)
def restore_logging():
    yield
    setup_logging("INFO")


def test_setup_logging_sets_root_level():
    setup_logging("debug")

    assert logging.getLogger().level == logging.DEBUG
    assert logging.getLogger("httpx").level == logging.WARNING


def test_access_log_can_be_silenced():
    setup_logging("INFO", access_log=False)

    assert logging.getLogger("uvicorn.access").level == logging.WARNING


def test_unknown_level_rejected():
    with pytest.raises(ValueError):
        setup_logging("LOUD")


def test_create_app_applies_access_log_setting(settings):
    create_app(settings.model_copy(update={"access_log": False}))

    assert logging.getLogger("uvicorn.access").level == logging.WARNING
