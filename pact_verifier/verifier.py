"""
Provider verification against consumer pacts.

Consumers are verified in the order the broker lists them and interactions
in document order, each awaited in turn: state setup, request replay,
response validation, then recording. Only response mismatches are
recovered; any other failure aborts the run before the summary.
"""

import logging
from typing import AsyncIterator, Iterable, Optional

import httpx

from .config import ProviderConfig
from .core.broker import PactSource, PactTarget, create_broker_client
from .core.matching import Matcher
from .core.publisher import ResultPublisher
from .core.replay import RequestReplayer
from .core.reporter import VerificationReporter
from .core.schemas import ConsumerOutcome, Interaction, MatchResult, RunOutcome
from .core.states import StateCoordinator
from .core.validator import ResponseValidator

logger = logging.getLogger(__name__)


async def _iterate(targets: Iterable[PactTarget]) -> AsyncIterator[PactTarget]:
    for target in targets:
        yield target


class Verifier:
    """
    One verification run of a provider against its consumers' pacts.

    The optional transports replace the network for the broker and the
    provider respectively, e.g. with ``httpx.MockTransport`` in tests.
    """

    def __init__(
        self,
        config: ProviderConfig,
        matcher: Optional[Matcher] = None,
        broker_transport: Optional[httpx.AsyncBaseTransport] = None,
        provider_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self.states = StateCoordinator(config.state_handlers)
        self.validator = ResponseValidator(matcher)
        self.reporter = VerificationReporter(config.provider, config.report_path)
        self.broker_transport = broker_transport
        self.provider_transport = provider_transport

    async def validate(self) -> RunOutcome:
        """
        Verify every latest consumer pact and report the outcome.

        Returns:
            RunOutcome: Final counters; ``exit_code`` is non-zero if any
            interaction failed

        Raises:
            VerifierException: If the run was aborted
        """
        config = self.config
        async with create_broker_client(config, self.broker_transport) as broker_client, \
                httpx.AsyncClient(timeout=config.timeout, transport=self.provider_transport) as provider_client:
            source = PactSource(config, broker_client)
            replayer = RequestReplayer(provider_client, config.provider_base_url, config.custom_headers)
            publisher = None
            if config.publish_verification_results:
                publisher = ResultPublisher(
                    broker_client, config.broker_url, config.provider_version, config.build_url
                )

            self.reporter.start()
            targets = source.iter_targets()
            if config.strict_states:
                prefetched = [target async for target in targets]
                self.states.ensure_registered(target.document for target in prefetched)
                targets = _iterate(prefetched)

            async for target in targets:
                consumer = await self.verify_consumer(target, replayer)
                if publisher:
                    published = await publisher.publish(target.document, consumer.success)
                    if published:
                        consumer.publish_status = published.status_code

        return self.reporter.finish()

    async def verify_consumer(self, target: PactTarget, replayer: RequestReplayer) -> ConsumerOutcome:
        consumer = self.reporter.start_consumer(target.consumer, target.version)
        for interaction in target.document.interactions:
            result = await self.verify_interaction(interaction, replayer)
            self.reporter.record(consumer, interaction, result)
        return consumer

    async def verify_interaction(self, interaction: Interaction, replayer: RequestReplayer) -> MatchResult:
        states = interaction.provider_states
        self.reporter.provider_states(states)
        await self.states.setup_states(states)
        request = replayer.build_request(interaction.request)
        actual = await replayer.replay(request)
        return self.validator.validate(actual, interaction.response)


async def verify(config: ProviderConfig, **kwargs) -> RunOutcome:
    """Run a provider verification with the given configuration."""
    return await Verifier(config, **kwargs).validate()
