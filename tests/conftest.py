import pathlib
import sys

import pytest
from fastapi.testclient import TestClient

ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from fakes import FakeReasoningClient, make_runtime
from offer_checker.main import create_app


@pytest.fixture
def fake_client() -> FakeReasoningClient:
    return FakeReasoningClient()


@pytest.fixture
def runtime(tmp_path, fake_client):
    return make_runtime(tmp_path, client=fake_client)


@pytest.fixture
def client(runtime) -> TestClient:
    return TestClient(create_app(runtime))
