"""
Ephemeral Kerberos credentials for GSSAPI binds.

The SASL GSSAPI mechanism used by python-ldap cannot be handed a credential
handle: it reads the ticket cache named by ``KRB5CCNAME``.
:py:class:`KeytabCredentialProvider` fetches a ticket-granting ticket from a
keytab into a private in-memory cache, points ``KRB5CCNAME`` (and
``KRB5_CLIENT_KTNAME``) at it for the duration of one bind attempt, then
destroys the cache and restores the environment on release.

The environment is shared by the whole process, so GSSAPI bind attempts are
serialized: :py:meth:`KeytabCredentialProvider.acquire` takes a process wide
lock that :py:meth:`KeytabCredentialProvider.release` gives back.
"""

import logging
import os
import threading
import uuid
from dataclasses import dataclass, field
from typing import Any, Protocol

import gssapi
import krb5

from .conf import get_keytab, null_logger
from .exceptions import CredentialError

CCACHE_ENV = "KRB5CCNAME"
CLIENT_KEYTAB_ENV = "KRB5_CLIENT_KTNAME"

#: Held from :py:meth:`KeytabCredentialProvider.acquire` until the matching
#: :py:meth:`KeytabCredentialProvider.release`.
environment_lock = threading.Lock()


class CredentialProvider(Protocol):
    def acquire(self, domain: str) -> Any: ...

    def release(self, handle: Any) -> None: ...


@dataclass
class KerberosCredentials:
    principal: str
    ccache: str
    credentials: gssapi.Credentials | None
    #: environment values we replaced, ``None`` for variables that were unset
    previous_environment: dict[str, str | None] = field(default_factory=dict)


class KeytabCredentialProvider:
    """
    Keyword Args:
        keytab: path to the client keytab; defaults to
            ``settings.ADCLIENT_KEYTAB``, then the system default keytab
        principal: client principal name without realm; defaults to the
            first principal in the keytab
        logger: where to log

    """

    def __init__(
        self,
        keytab: str | None = None,
        principal: str | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.keytab = keytab or get_keytab()
        self.principal = principal
        self.logger = logger or null_logger

    def _set_environment(self, ccache: str) -> dict[str, str | None]:
        values = {CCACHE_ENV: ccache}
        if self.keytab:
            values[CLIENT_KEYTAB_ENV] = self.keytab
        previous = {name: os.environ.get(name) for name in values}
        os.environ.update(values)
        return previous

    def _destroy_ccache(self, ccache: str) -> None:
        try:
            context = krb5.init_context()
            krb5.cc_destroy(context, krb5.cc_resolve(context, ccache.encode()))
        except krb5.Krb5Error as e:
            self.logger.warning(
                "adclient.credentials.destroy.failed ccache=%s error=%s", ccache, e
            )

    def acquire(self, domain: str) -> KerberosCredentials:
        """
        Get a ticket-granting ticket for the realm of ``domain`` into a new
        in-memory ticket cache, and make that cache the process default.

        The caller must hand the result to :py:meth:`release`, which ends the
        exclusive use of the process environment.

        Raises:
            CredentialError: GSSAPI could not obtain credentials

        """
        realm = domain.upper()
        ccache = f"MEMORY:adclient_{uuid.uuid4().hex}"
        store = {"ccache": ccache}
        if self.keytab:
            store["client_keytab"] = self.keytab
        principal = ""
        environment_lock.acquire()
        try:
            name = None
            if self.principal:
                principal = f"{self.principal}@{realm}"
                name = gssapi.Name(
                    principal, name_type=gssapi.NameType.kerberos_principal
                )
            credentials = gssapi.Credentials(name=name, usage="initiate", store=store)
            # krb5 defers the keytab login until the credentials are used;
            # inquiring them fetches the TGT into ``ccache`` now
            lifetime = credentials.lifetime
            principal = principal or str(credentials.name)
        except gssapi.exceptions.GSSError as e:
            self._destroy_ccache(ccache)
            environment_lock.release()
            msg = f"Error while acquiring Kerberos credentials for {realm}: {e}"
            raise CredentialError(msg) from e
        except BaseException:
            self._destroy_ccache(ccache)
            environment_lock.release()
            raise
        handle = KerberosCredentials(
            principal=principal,
            ccache=ccache,
            credentials=credentials,
            previous_environment=self._set_environment(ccache),
        )
        self.logger.debug(
            "adclient.credentials.acquired principal=%s ccache=%s lifetime=%s",
            handle.principal,
            ccache,
            lifetime,
        )
        return handle

    def release(self, handle: KerberosCredentials) -> None:
        """
        Destroy the ticket cache of ``handle`` and restore the environment
        variables :py:meth:`acquire` replaced.
        """
        try:
            handle.credentials = None
            self._destroy_ccache(handle.ccache)
            for name, value in handle.previous_environment.items():
                if value is None:
                    os.environ.pop(name, None)
                else:
                    os.environ[name] = value
        finally:
            environment_lock.release()
        self.logger.debug("adclient.credentials.released principal=%s", handle.principal)
