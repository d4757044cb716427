"""
Provider state setup for contract verification.

A provider state is a named precondition recorded by the consumer. Before
an interaction is replayed, the setup action registered for its state is
awaited. An interaction whose state has no registered action is still
replayed unless strict state checking is enabled.
"""

import inspect
import logging
from typing import Any, Callable, Iterable, List, Mapping

from .errors import VerifierErrorCode, create_state_error
from .schemas import ConsumerPactDocument

logger = logging.getLogger(__name__)


class StateCoordinator:
    """Resolves and invokes provider state setup actions."""

    def __init__(self, handlers: Mapping[str, Callable[[], Any]]):
        self.handlers = dict(handlers)

    async def setup_state(self, state: str) -> bool:
        """
        Set up one provider state.

        Args:
            state: Provider state label from the interaction

        Returns:
            True if a setup action ran, False if none is registered

        Raises:
            StateSetupError: If the setup action fails
        """
        handler = self.handlers.get(state)
        if handler is None:
            logger.debug(f"No setup action registered for provider state: {state}")
            return False

        try:
            result = handler()
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            raise create_state_error(
                VerifierErrorCode.STATE_HANDLER_FAILED,
                f"Setup action for provider state '{state}' failed",
                states=[state],
                cause=e,
            ) from e
        return True

    async def setup_states(self, states: Iterable[str]) -> None:
        for state in states:
            await self.setup_state(state)

    def unregistered_states(self, documents: Iterable[ConsumerPactDocument]) -> List[str]:
        """Provider state labels used by the documents that have no setup action."""
        missing: List[str] = []
        for document in documents:
            for interaction in document.interactions:
                for state in interaction.provider_states:
                    if state not in self.handlers and state not in missing:
                        missing.append(state)
        return missing

    def ensure_registered(self, documents: Iterable[ConsumerPactDocument]) -> None:
        """
        Fail fast when any provider state has no setup action.

        Raises:
            StateSetupError: Listing every unregistered state label
        """
        missing = self.unregistered_states(documents)
        if missing:
            raise create_state_error(
                VerifierErrorCode.STATE_UNREGISTERED,
                f"No setup action registered for provider states: {', '.join(missing)}",
                states=missing,
            )
