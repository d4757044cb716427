"""Command line entry point for provider verification."""

import argparse
import asyncio
import importlib
import logging
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from .config import ProviderConfig, get_settings
from .core.errors import VerifierErrorCode, VerifierException, create_config_error
from .logging_setup import setup_logging
from .verifier import verify

logger = logging.getLogger(__name__)

EXIT_ABORTED = 2


def load_state_handlers(reference: str) -> Dict[str, Callable[[], Any]]:
    """
    Import a state handler mapping given as ``package.module:attribute``.

    Raises:
        ConfigurationError: If the mapping cannot be imported
    """
    module_name, _, attribute = reference.partition(":")
    if not module_name or not attribute:
        raise create_config_error(
            VerifierErrorCode.CONFIG_INVALID_VALUE,
            f"State handlers must be given as module:attribute, got '{reference}'",
            field="state_handlers",
        )
    try:
        handlers = getattr(importlib.import_module(module_name), attribute)
    except (ImportError, AttributeError) as e:
        raise create_config_error(
            VerifierErrorCode.CONFIG_INVALID_VALUE,
            f"Cannot load state handlers '{reference}': {e}",
            field="state_handlers",
        ) from e
    if not isinstance(handlers, dict):
        raise create_config_error(
            VerifierErrorCode.CONFIG_INVALID_VALUE,
            f"State handlers '{reference}' is not a mapping",
            field="state_handlers",
        )
    return handlers


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pact-verifier",
        description="Verify a running provider against its consumers' pacts",
    )
    parser.add_argument("--broker-url", help="Pact broker base URL")
    parser.add_argument("--provider", help="Provider name as registered in the broker")
    parser.add_argument("--provider-base-url", help="Base URL of the running provider")
    parser.add_argument("--provider-version", help="Provider application version")
    parser.add_argument("--publish", action="store_true", default=None,
                        help="Publish verification results to the broker")
    parser.add_argument("--tag", action="append", dest="tags",
                        help="Only verify the latest pacts with this tag (repeatable)")
    parser.add_argument("--pact-url", action="append", dest="pact_urls",
                        help="Pact file path or URL to verify instead of the broker listing (repeatable)")
    parser.add_argument("--state-handlers", help="Provider state handlers as module:attribute")
    parser.add_argument("--strict-states", action="store_true", default=None,
                        help="Fail before replaying if any provider state has no handler")
    parser.add_argument("--report-path", type=Path, help="Write a JSON report to this file")
    parser.add_argument("--log-level", help="Logging level")
    parser.add_argument("--log-format", choices=["text", "json"], help="Log output format")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    settings = get_settings()
    if args.log_level:
        settings.LOG_LEVEL = args.log_level
    if args.log_format:
        settings.LOG_FORMAT = args.log_format
    setup_logging(settings)

    try:
        handlers = load_state_handlers(args.state_handlers) if args.state_handlers else None
        config = ProviderConfig.from_settings(
            settings,
            state_handlers=handlers,
            broker_url=args.broker_url,
            provider=args.provider,
            provider_base_url=args.provider_base_url,
            provider_version=args.provider_version,
            publish_verification_results=args.publish,
            tags=tuple(args.tags) if args.tags else None,
            pact_urls=tuple(args.pact_urls) if args.pact_urls else None,
            strict_states=args.strict_states,
            report_path=args.report_path,
        )
        outcome = asyncio.run(verify(config))
    except VerifierException as e:
        logger.error(f"Verification aborted: {e}", extra={"error": e.error_detail.to_dict()})
        return EXIT_ABORTED

    return outcome.exit_code


if __name__ == "__main__":
    sys.exit(main())
