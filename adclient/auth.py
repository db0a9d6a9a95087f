"""
Selection of the authentication mechanism for a bind attempt.
"""

from dataclasses import dataclass
from enum import Enum


class LoginMethod(str, Enum):
    SIMPLE = "SIMPLE"
    DIGEST_MD5 = "DIGEST-MD5"
    GSSAPI = "GSSAPI"


class CredentialSource(str, Enum):
    #: ``bind_identity`` and ``bind_secret`` from the connection parameters
    PARAMS = "params"
    #: ephemeral credentials from a :py:class:`adclient.credentials.CredentialProvider`
    PROVIDER = "provider"


@dataclass(frozen=True)
class AuthMechanism:
    login_method: LoginMethod
    #: the SASL mechanism name, or ``None`` for a simple bind
    sasl_mechanism: str | None
    credential_source: CredentialSource
    #: register a re-authentication hook on the session
    reauthenticate: bool = False


#: Keyed by ``(secured, use_gssapi)``.
AUTH_TABLE: dict[tuple[bool, bool], AuthMechanism] = {
    (False, False): AuthMechanism(LoginMethod.SIMPLE, None, CredentialSource.PARAMS),
    (False, True): AuthMechanism(LoginMethod.SIMPLE, None, CredentialSource.PARAMS),
    (True, False): AuthMechanism(
        LoginMethod.DIGEST_MD5, "DIGEST-MD5", CredentialSource.PARAMS
    ),
    (True, True): AuthMechanism(
        LoginMethod.GSSAPI, "GSSAPI", CredentialSource.PROVIDER, reauthenticate=True
    ),
}


def select_auth_mechanism(secured: bool, use_gssapi: bool) -> AuthMechanism:
    """
    Map the ``secured`` and ``use_gssapi`` connection flags to exactly one
    authentication mechanism.  ``use_gssapi`` only matters when ``secured``
    is set.
    """
    return AUTH_TABLE[(bool(secured), bool(use_gssapi))]
