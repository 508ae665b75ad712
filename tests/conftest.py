import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from nutrient_engine import substances, utils


@pytest.fixture(autouse=True)
def _isolated_datasets(monkeypatch):
    """Run every test against the bundled datasets only."""
    for env in (utils.DATA_ENV, utils.EXTRA_ENV, utils.OVERLAY_ENV):
        monkeypatch.delenv(env, raising=False)
    utils.clear_dataset_cache()
    yield
    utils.clear_dataset_cache()


@pytest.fixture
def salts():
    """Standard substances keyed by name."""
    return {s.name: s for s in substances.list_substances()}
