"""Optional Sentry reporting for `cue run`.

Install with ``pip install cue[sentry]``. Execution failures are logged at
ERROR by the scheduler and executors, so the logging integration turns them
into Sentry events without any Sentry calls in the engine itself.
"""

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from cue.config import SentryConfig

logger = logging.getLogger(__name__)

try:
    import sentry_sdk
    from sentry_sdk.integrations.asyncio import AsyncioIntegration
    from sentry_sdk.integrations.logging import LoggingIntegration

    SENTRY_AVAILABLE = True
except ImportError:
    SENTRY_AVAILABLE = False


def init_sentry(config: "SentryConfig") -> bool:
    """Initialize Sentry if the SDK is installed and a DSN is configured.

    Returns:
        True if Sentry was initialized.
    """
    if not SENTRY_AVAILABLE:
        logger.debug("sentry_sdk_missing")
        return False
    if not config.dsn:
        logger.debug("sentry_dsn_missing")
        return False

    sentry_sdk.init(
        dsn=config.dsn.get_secret_value(),
        environment=config.environment,
        release=config.release,
        traces_sample_rate=config.traces_sample_rate,
        profiles_sample_rate=config.profiles_sample_rate,
        send_default_pii=config.send_default_pii,
        debug=config.debug,
        integrations=[
            AsyncioIntegration(),
            # Breadcrumbs from INFO, events from ERROR
            LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
        ],
    )
    sentry_sdk.set_tag("component", "automations")
    logger.info("sentry_initialized", extra={"sentry.environment": config.environment})
    return True
