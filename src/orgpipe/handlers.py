"""AWS Lambda entry points, one per state machine Task.

Each handler builds its stage from a fresh Settings instance, runs it on
the incoming event and returns the ``{"statusCode", "body"}`` envelope as
a plain dict.

A failure of a retryable kind (UpstreamError, NetworkError,
ProviderUnavailable, PersistenceFailure) is raised instead, so the Lambda
reports the kind as its errorType and the Task's Retry policy applies.
Every other failure comes back as a 500 envelope for the Choice state
after the Task to route.

Handler paths (for the function configuration):
    orgpipe.handlers.provider_endpoint
    orgpipe.handlers.decryption_handler
    orgpipe.handlers.extract_orgs
    orgpipe.handlers.entity_fetch_handler
    orgpipe.handlers.prepare_data_to_files
"""

import asyncio
import logging
from typing import Any, Callable

from orgpipe.config import Settings, load_settings
from orgpipe.errors import error_from_payload
from orgpipe.pipeline import (
    Decryptor,
    EntityExtractor,
    EntityFetcher,
    ProviderSource,
    ResultWriter,
)
from orgpipe.pipeline.stage import Stage

logger = logging.getLogger(__name__)


def _run(build: Callable[[Settings], Stage], event: Any) -> dict[str, Any]:
    settings = load_settings()
    # The Lambda runtime installs its own root handler; only the level is ours
    logging.getLogger().setLevel(settings.log_level)

    stage = build(settings)
    logger.info("Invoking %s", stage.name)
    response = asyncio.run(stage.handle(event))
    if not response.ok:
        error = error_from_payload(response.body)
        if error.retryable:
            logger.warning("%s failed with retryable %s: %s", stage.name, error.kind, error.message)
            raise error
    return response.to_dict()


def provider_endpoint(event: Any, context: Any = None) -> dict[str, Any]:
    """ProviderEndpoint: execution input → provider record."""
    return _run(ProviderSource.from_settings, event)


def decryption_handler(event: Any, context: Any = None) -> dict[str, Any]:
    """DecryptionHandler: provider envelope → provider record with resolved secret."""
    return _run(Decryptor.from_settings, event)


def extract_orgs(event: Any, context: Any = None) -> dict[str, Any]:
    """ExtractOrgs: provider envelope → ``{"orgIds": [...]}``."""
    return _run(lambda settings: EntityExtractor(), event)


def entity_fetch_handler(event: Any, context: Any = None) -> dict[str, Any]:
    """EntityFetchHandler: one extracted entity → fetch result."""
    return _run(EntityFetcher.from_settings, event)


def prepare_data_to_files(event: Any, context: Any = None) -> dict[str, Any]:
    """PrepareDataToFiles: ``{"batchResults": [...]}`` → write summary."""
    return _run(ResultWriter.from_settings, event)
