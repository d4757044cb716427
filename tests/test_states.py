import pytest

from pact_verifier.core.errors import StateSetupError, VerifierErrorCode
from pact_verifier.core.schemas import ConsumerPactDocument
from pact_verifier.core.states import StateCoordinator


def document(*states):
    return ConsumerPactDocument.model_validate(
        {
            "consumer": {"name": "web-app"},
            "interactions": [
                {"description": f"interaction {i}", "providerState": state, "request": {"path": "/"}}
                for i, state in enumerate(states)
            ],
        }
    )


@pytest.mark.asyncio
async def test_async_handler_is_awaited():
    calls = []

    async def user_exists():
        calls.append("user exists")

    coordinator = StateCoordinator({"user 1 exists": user_exists})
    assert await coordinator.setup_state("user 1 exists") is True
    assert calls == ["user exists"]


@pytest.mark.asyncio
async def test_sync_handler_is_called():
    calls = []
    coordinator = StateCoordinator({"no users": lambda: calls.append("cleared")})
    assert await coordinator.setup_state("no users") is True
    assert calls == ["cleared"]


@pytest.mark.asyncio
async def test_unregistered_state_is_skipped():
    coordinator = StateCoordinator({})
    assert await coordinator.setup_state("user 1 exists") is False


@pytest.mark.asyncio
async def test_handler_failure_is_wrapped():
    async def broken():
        raise RuntimeError("database is down")

    coordinator = StateCoordinator({"user 1 exists": broken})
    with pytest.raises(StateSetupError) as exc:
        await coordinator.setup_state("user 1 exists")

    assert exc.value.code == VerifierErrorCode.STATE_HANDLER_FAILED
    assert isinstance(exc.value.cause, RuntimeError)
    assert exc.value.error_detail.details == "database is down"
    assert exc.value.error_detail.context == {"states": ["user 1 exists"]}


@pytest.mark.asyncio
async def test_setup_states_runs_in_order():
    calls = []
    coordinator = StateCoordinator({
        "a": lambda: calls.append("a"),
        "b": lambda: calls.append("b"),
    })
    await coordinator.setup_states(["b", "a", "missing"])
    assert calls == ["b", "a"]


def test_unregistered_states_are_collected_once():
    coordinator = StateCoordinator({"user 1 exists": lambda: None})
    documents = [document("user 1 exists", "no users"), document("no users", None, "user is admin")]
    assert coordinator.unregistered_states(documents) == ["no users", "user is admin"]


def test_ensure_registered_fails_fast():
    coordinator = StateCoordinator({})
    with pytest.raises(StateSetupError) as exc:
        coordinator.ensure_registered([document("no users")])
    assert exc.value.code == VerifierErrorCode.STATE_UNREGISTERED
    assert "no users" in str(exc.value)


def test_ensure_registered_passes_when_all_handled():
    coordinator = StateCoordinator({"no users": lambda: None})
    coordinator.ensure_registered([document("no users", None)])
