"""
Library-wide settings and the default logger.

Settings are read lazily from Django settings when a Django project is
configured; otherwise the built-in defaults are used, so the library also
works outside of a Django project.
"""

import logging
from typing import Any

from django.conf import settings

#: Page size requested for each paged search round trip; override it with
#: ``settings.ADCLIENT_PAGE_SIZE`` or ``ADClient(page_size=...)``.
DEFAULT_PAGE_SIZE: int = 2
#: Seconds to wait for DNS service record lookups.
DEFAULT_DNS_TIMEOUT: float = 5.0

#: Logger handed to components when the caller does not inject one.  It
#: discards everything.
null_logger = logging.getLogger("adclient.null")
null_logger.addHandler(logging.NullHandler())
null_logger.propagate = False


def get_setting(name: str, default: Any) -> Any:
    """
    Get a value from Django settings with fallback.

    Args:
        name: full name of the setting, e.g. ``ADCLIENT_PAGE_SIZE``
        default: value to return if the setting is missing or Django settings
            are not configured

    Returns:
        The configured value, or ``default``.

    """
    if not settings.configured:
        return default
    return getattr(settings, name, default)


def get_page_size() -> int:
    """Get the paged search page size from settings or use the default."""
    return int(get_setting("ADCLIENT_PAGE_SIZE", DEFAULT_PAGE_SIZE))


def get_dns_timeout() -> float:
    """Get the DNS lookup timeout from settings or use the default."""
    return float(get_setting("ADCLIENT_DNS_TIMEOUT", DEFAULT_DNS_TIMEOUT))


def get_keytab() -> str | None:
    """Get the Kerberos keytab path from settings, if any."""
    return get_setting("ADCLIENT_KEYTAB", None)
