"""
Pytest configuration for provider verification tests.

The Pact broker and the provider under test are simulated in memory, see
``tests/fakes.py``.
"""

import pytest

from pact_verifier.config import ProviderConfig

from .fakes import BROKER_URL, PROVIDER_NAME, PROVIDER_URL, FakeBroker, FakeProvider

ENV_VARS = [
    "LOG_LEVEL",
    "LOG_FORMAT",
    "PACT_BROKER_URL",
    "PACT_BROKER_USERNAME",
    "PACT_BROKER_PASSWORD",
    "PACT_BROKER_TOKEN",
    "PACT_TAGS",
    "PACT_URLS",
    "PACT_PROVIDER_NAME",
    "PACT_PROVIDER_BASE_URL",
    "PACT_PROVIDER_VERSION",
    "APP_VERSION",
    "PACT_CUSTOM_PROVIDER_HEADERS",
    "PACT_STRICT_PROVIDER_STATES",
    "PACT_PUBLISH_VERIFICATION_RESULTS",
    "BUILD_URL",
    "REPORT_PATH",
    "HTTP_TIMEOUT",
    "BROKER_RETRIES",
]


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "provider: Provider verification runs")
    config.addinivalue_line("markers", "broker: Pact broker interaction tests")


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch: pytest.MonkeyPatch, tmp_path):
    """Keep the developer's environment, .env and YAML files out of the tests."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("PACT_VERIFIER_CONFIG_FILE", str(tmp_path / "missing.yaml"))
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def fake_broker() -> FakeBroker:
    return FakeBroker()


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def provider_config() -> ProviderConfig:
    return ProviderConfig(
        provider=PROVIDER_NAME,
        provider_base_url=PROVIDER_URL,
        broker_url=BROKER_URL,
        broker_username="pact",
        broker_password="pact-secret",
    )
