"""
Error taxonomy for the directory client.

Every error carries a human readable message, an optional numeric ``code``
(the LDAP result code when the failure came from the server) and a
machine-checkable ``kind``.
"""

from typing import Any

from django.core.exceptions import ImproperlyConfigured

from adclient import ldap


class ADClientError(Exception):
    """
    Base class for all errors raised by :py:mod:`adclient`.

    Args:
        message: human readable description of the failure

    Keyword Args:
        code: LDAP result code or other numeric code, if known

    """

    kind: str = "error"

    def __init__(self, message: str, code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code

    def __str__(self) -> str:
        return self.message


class ConfigError(ADClientError, ImproperlyConfigured):
    """
    Invalid or contradictory parameters, detected before any I/O.
    """

    kind = "config"


class ResolutionError(ADClientError):
    """
    Mandatory DNS discovery failed.
    """

    kind = "resolution"


class DNSDecodeError(ResolutionError):
    """
    A DNS response message could not be decoded.
    """

    kind = "dns-decode"


class CredentialError(ADClientError):
    """
    The credential provider could not produce credentials.
    """

    kind = "credentials"


class BindError(ADClientError):
    """
    Terminal failure to establish an authenticated session.

    Args:
        message: human readable description of the failure

    Keyword Args:
        server: the URI of the last server we tried
        code: LDAP result code of the last failure, if known

    """

    kind = "bind"

    def __init__(
        self, message: str, server: str | None = None, code: int | None = None
    ) -> None:
        super().__init__(message, code=code)
        self.server = server


class NotConnectedError(ADClientError):
    """
    An operation was attempted without an active session.
    """

    kind = "connection"


class SearchError(ADClientError):
    """
    Failure during the query phase.
    """

    kind = "search"


class NotFound(SearchError):
    """
    The search matched no entries.
    """

    kind = "not-found"


class AttributeNotFound(SearchError):
    """
    The entry exists but does not carry the requested attribute.
    """

    kind = "attribute-not-found"


class OperationalError(ADClientError):
    """
    A modify, rename, move or delete request failed.
    """

    kind = "operational"


class FormatError(ADClientError):
    """
    A distinguished name could not be parsed.
    """

    kind = "format"


def _ldap_error_info(exc: Exception) -> dict[str, Any]:
    if exc.args and isinstance(exc.args[0], dict):
        return exc.args[0]
    return {}


def ldap_error_message(exc: Exception) -> str:
    """
    Build a one line message out of a python-ldap exception.

    python-ldap puts a dict with ``desc`` and, sometimes, ``info`` in
    ``exc.args[0]``.

    Args:
        exc: the exception raised by python-ldap

    Returns:
        ``"<desc>: <info>"``, or just ``desc``, or ``str(exc)``.

    """
    info = _ldap_error_info(exc)
    desc = info.get("desc")
    if not desc:
        return str(exc) or exc.__class__.__name__
    extra = info.get("info")
    if extra:
        return f"{desc}: {extra}"
    return desc


def ldap_error_code(exc: Exception) -> int | None:
    """
    Return the LDAP result code carried by a python-ldap exception, if any.
    """
    result = _ldap_error_info(exc).get("result")
    if result is None and isinstance(exc, ldap.LDAPError):
        result = getattr(exc, "errnum", None)
    return result
