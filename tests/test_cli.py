import logging
import sys
import types

import pytest

from pact_verifier import cli
from pact_verifier.core.errors import ConfigurationError
from pact_verifier.core.schemas import RunOutcome


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    yield
    root.handlers[:] = saved_handlers
    root.setLevel(saved_level)


@pytest.fixture
def handlers_module(monkeypatch):
    module = types.ModuleType("provider_states_for_tests")
    module.STATE_HANDLERS = {"no users": lambda: None}
    module.NOT_A_MAPPING = ["no users"]
    monkeypatch.setitem(sys.modules, module.__name__, module)
    return module


def test_load_state_handlers(handlers_module):
    handlers = cli.load_state_handlers("provider_states_for_tests:STATE_HANDLERS")
    assert list(handlers) == ["no users"]


@pytest.mark.parametrize(
    "reference",
    [
        "provider_states_for_tests",
        "provider_states_for_tests:MISSING",
        "provider_states_for_tests:NOT_A_MAPPING",
        "no_such_module_anywhere:HANDLERS",
    ],
)
def test_bad_state_handlers_are_configuration_errors(handlers_module, reference):
    with pytest.raises(ConfigurationError):
        cli.load_state_handlers(reference)


def test_missing_configuration_exits_with_abort_code(restore_logging):
    assert cli.main(["--provider", "user-service"]) == cli.EXIT_ABORTED


def test_exit_code_follows_outcome(monkeypatch, restore_logging):
    captured = {}

    async def fake_verify(config):
        captured["config"] = config
        return RunOutcome(provider=config.provider, total=2, passed=1, failed=1)

    monkeypatch.setattr(cli, "verify", fake_verify)

    code = cli.main([
        "--provider", "user-service",
        "--broker-url", "http://broker.test",
        "--tag", "prod",
        "--tag", "main",
        "--publish",
        "--provider-version", "1.0.0",
        "--strict-states",
    ])

    assert code == 1
    config = captured["config"]
    assert config.tags == ("prod", "main")
    assert config.publish_verification_results is True
    assert config.strict_states is True
    assert config.provider_version == "1.0.0"


def test_passing_run_exits_zero(monkeypatch, restore_logging):
    async def fake_verify(config):
        return RunOutcome(provider=config.provider, total=1, passed=1)

    monkeypatch.setattr(cli, "verify", fake_verify)
    monkeypatch.setenv("PACT_PROVIDER_NAME", "user-service")
    monkeypatch.setenv("PACT_URLS", "pacts/web-app.json")

    assert cli.main([]) == 0
