import logging
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from reserve_adjuster.settings import ReserveSettings  # noqa: E402
from reserve_adjuster.settings_store import SettingsStore  # noqa: E402


logger = logging.getLogger("reserve-adjuster-tests")


def pytest_runtest_setup(item):
    logger.info("Running %s", item.nodeid)


@pytest.fixture
def store(tmp_path):
    return SettingsStore(str(tmp_path / "settings.json"))


@pytest.fixture
def settings(store):
    return ReserveSettings(store)
