import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from tests.utils import sample_fleet  # noqa: E402
from zk.prover import Keyring  # noqa: E402


@pytest.fixture(scope="session")
def keyring():
    return Keyring.generate(b"tests")


@pytest.fixture
def fleet():
    return sample_fleet()
