import pytest

from condor.sequence.base import CancellationToken
from condor.sequence.status import ProgressChannel
from tests.fakes import FakeBackend

@pytest.fixture
def backend():
    return FakeBackend()

@pytest.fixture
def progress():
    return ProgressChannel()

@pytest.fixture
def cancellation():
    return CancellationToken()
