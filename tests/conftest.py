import pytest
from samaya_client.config import Settings
from samaya_client.gateway import RequestGateway
from samaya_client.session import InMemoryTokenStore, Session

BASE_URL = "https://api.samaya.test"


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch, tmp_path):
    for key in ("SAMAYA_API_BASE_URL", "SAMAYA_ENVIRONMENT", "SAMAYA_MOCK_AUTH", "SAMAYA_TOKEN_FILE"):
        monkeypatch.delenv(key, raising=False)
    # Keep a developer's .env out of the settings under test.
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        api_base_url=BASE_URL,
        environment="test",
        request_timeout_seconds=5.0,
        startup_min_duration_seconds=0.2,
    )


@pytest.fixture
def session() -> Session:
    return Session(InMemoryTokenStore())


@pytest.fixture
def gateway(settings, session) -> RequestGateway:
    return RequestGateway(settings, session)
