# mypy: disable-error-code="attr-defined"
"""
The directory client: session establishment with server failover, and the
facade over :py:class:`adclient.search.PagedSearch` and
:py:class:`adclient.mutator.AttributeMutator`.

Example:

    .. code-block:: python

        params = ConnectionParams.from_settings("default")
        with ADClient() as client:
            client.connect(params)
            client.search_dn(params.search_base, "(sAMAccountName=bob)")

"""

import logging
from collections.abc import Callable, Sequence
from contextlib import suppress
from dataclasses import dataclass
from typing import Any

from adclient import ldap

from .auth import AuthMechanism, CredentialSource, select_auth_mechanism
from .conf import null_logger
from .discovery import DNSResolver, resolve_servers
from .exceptions import (
    ADClientError,
    BindError,
    ConfigError,
    NotConnectedError,
    ldap_error_code,
    ldap_error_message,
)
from .mutator import AttributeMutator, Values
from .params import UNSET, ConnectionParams
from .search import PagedSearch
from .transport import DirectoryTransport, LDAPTransport
from .typing import AttributeMap, DirectoryEntries


@dataclass
class Session:
    """
    An authenticated connection to one directory server.

    Sessions are created by :py:meth:`ADClient.connect` and owned by the
    client; ``handle`` is the transport's connection object.
    """

    handle: Any
    uri: str
    #: ``plain``, ``LDAPS`` or ``StartTLS``
    bind_method: str
    #: ``SIMPLE``, ``DIGEST-MD5`` or ``GSSAPI``
    login_method: str
    search_base: str = ""
    #: re-runs the bind on ``handle``; only set for GSSAPI sessions
    rebind: Callable[[], None] | None = None


def normalize_uri(server: str, use_ldaps: bool) -> str:
    """
    Prefix bare host names with ``ldaps://`` or ``ldap://``.
    """
    if "://" in server:
        return server
    scheme = "ldaps" if use_ldaps else "ldap"
    return f"{scheme}://{server}"


class ADClient:
    """
    A client for an Active Directory (or other LDAPv3) server.

    A client owns at most one :py:class:`Session` at a time.  It is not
    thread safe: use one client per thread.

    Keyword Args:
        transport: how to talk to the server; defaults to
            :py:class:`adclient.transport.LDAPTransport`
        credential_provider: where GSSAPI binds get Kerberos credentials;
            defaults to :py:class:`adclient.credentials.KeytabCredentialProvider`
        resolver: DNS resolver used to discover servers
        logger: where to log
        page_size: entries per paged search round trip

    """

    def __init__(
        self,
        transport: DirectoryTransport | None = None,
        credential_provider: Any | None = None,
        resolver: DNSResolver | None = None,
        logger: logging.Logger | None = None,
        page_size: int | None = None,
    ) -> None:
        self.transport = transport or LDAPTransport()
        self._credential_provider = credential_provider
        self.resolver = resolver
        self.logger = logger or null_logger
        self.session: Session | None = None
        self.searcher = PagedSearch(self, page_size=page_size, logger=self.logger)
        self.mutator = AttributeMutator(self, logger=self.logger)

    def __enter__(self) -> "ADClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def __del__(self) -> None:
        with suppress(Exception):
            self.close()

    @property
    def credential_provider(self):
        """
        Where GSSAPI binds get their Kerberos credentials.

        Raises:
            ConfigError: no provider was given and the ``kerberos`` extra is
                not installed

        """
        if self._credential_provider is None:
            # gssapi is an optional dependency, only needed for GSSAPI binds
            try:
                from .credentials import KeytabCredentialProvider  # noqa: PLC0415
            except ImportError as e:
                msg = f"GSSAPI binds need the 'kerberos' extra: {e}"
                raise ConfigError(msg) from e
            self._credential_provider = KeytabCredentialProvider(logger=self.logger)
        return self._credential_provider

    # -----------------------
    # Session management
    # -----------------------

    def _candidates(self, params: ConnectionParams) -> list[str]:
        servers = list(params.candidate_servers)
        if not servers:
            servers = resolve_servers(
                params.domain,
                site=params.site or None,
                resolver=self.resolver,
                logger=self.logger,
            )
            if not servers:
                msg = f"No suitable connection params found: no servers for {params.domain}"
                raise ConfigError(msg)
        return [normalize_uri(server, params.use_ldaps) for server in servers]

    def _apply_options(self, handle: Any, params: ConnectionParams) -> None:
        self.transport.set_option(handle, ldap.OPT_PROTOCOL_VERSION, ldap.VERSION3)
        self.transport.set_option(handle, ldap.OPT_REFERRALS, 0)
        if params.network_timeout != UNSET:
            timeout = float(params.network_timeout)
            self.transport.set_option(handle, ldap.OPT_NETWORK_TIMEOUT, timeout)
            self.transport.set_option(handle, ldap.OPT_TIMEOUT, timeout)
        if params.server_time_limit != UNSET:
            self.transport.set_option(
                handle, ldap.OPT_TIMELIMIT, int(params.server_time_limit)
            )

    def _authenticate(
        self, handle: Any, params: ConnectionParams, mechanism: AuthMechanism
    ) -> Callable[[], None] | None:
        if mechanism.credential_source == CredentialSource.PARAMS:
            self.transport.authenticate(
                handle, mechanism, params.bind_identity, params.bind_secret
            )
            return None

        def bind() -> None:
            provider = self.credential_provider
            credentials = provider.acquire(params.domain)
            try:
                self.transport.authenticate(handle, mechanism)
            finally:
                provider.release(credentials)

        bind()
        return bind if mechanism.reauthenticate else None

    def _discard(self, handle: Any) -> None:
        with suppress(ldap.LDAPError):
            self.transport.unbind(handle)

    def _bind(
        self, uri: str, params: ConnectionParams, mechanism: AuthMechanism
    ) -> Session:
        handle = self.transport.open(uri)
        try:
            self._apply_options(handle, params)
            if params.use_tls:
                self.transport.start_tls(handle)
            rebind = self._authenticate(handle, params, mechanism)
        except BaseException:
            self._discard(handle)
            raise
        return Session(
            handle=handle,
            uri=uri,
            bind_method=params.bind_method,
            login_method=mechanism.login_method.value,
            search_base=params.search_base,
            rebind=rebind,
        )

    def connect(self, params: ConnectionParams) -> Session:
        """
        Bind to the first candidate server that accepts us.

        Candidates are tried in order.  If ``params.candidate_servers`` is
        empty they are discovered from ``params.domain`` and ``params.site``.
        A failure on one candidate (options, StartTLS, credentials or the
        bind itself) moves on to the next one.

        On success the new session replaces the current one, which is
        unbound.

        Args:
            params: the connection parameters

        Raises:
            ConfigError: ``params`` are contradictory or incomplete,
                discovery found no servers, or a GSSAPI bind was asked for
                without the ``kerberos`` extra
            ResolutionError: server discovery failed
            BindError: every candidate failed; ``BindError.server`` is the
                last one tried

        Returns:
            The new session.

        """
        params.validate()
        mechanism = select_auth_mechanism(params.secured, params.use_gssapi)
        if mechanism.credential_source == CredentialSource.PROVIDER:
            # fail before trying any server if GSSAPI support is missing
            self.credential_provider  # noqa: B018
        candidates = self._candidates(params)

        last_uri = ""
        last_message = ""
        last_code: int | None = None
        session: Session | None = None
        for uri in candidates:
            last_uri = uri
            try:
                session = self._bind(uri, params, mechanism)
            except ldap.LDAPError as e:
                last_message = ldap_error_message(e)
                last_code = ldap_error_code(e)
            except (ADClientError, OSError) as e:
                last_message = str(e)
                last_code = getattr(e, "code", None)
            else:
                break
            self.logger.warning(
                "adclient.bind.failed uri=%s method=%s error=%s",
                uri,
                mechanism.login_method.value,
                last_message,
            )
        if session is None:
            msg = (
                f"Error while {mechanism.login_method.value} binding to {last_uri}: "
                f"{last_message}"
            )
            raise BindError(msg, server=last_uri, code=last_code)

        previous, self.session = self.session, session
        if previous is not None:
            self._discard(previous.handle)
        self.logger.info(
            "adclient.bind.success uri=%s bind_method=%s login_method=%s",
            session.uri,
            session.bind_method,
            session.login_method,
        )
        return session

    login = connect

    def logout(self) -> None:
        """
        Unbind the current session, if any.  Safe to call repeatedly.
        """
        session, self.session = self.session, None
        if session is not None:
            self._discard(session.handle)
            self.logger.info("adclient.unbind uri=%s", session.uri)

    close = logout

    def reauthenticate(self) -> None:
        """
        Run the bind again on the current session, with fresh Kerberos
        credentials.

        Raises:
            NotConnectedError: there is no active session
            ConfigError: the session was not established with GSSAPI

        """
        session = self.require_session()
        if session.rebind is None:
            msg = f"{session.login_method} sessions cannot re-authenticate"
            raise ConfigError(msg)
        session.rebind()

    def require_session(self) -> Session:
        """
        Return the current session.

        Raises:
            NotConnectedError: there is no active session

        """
        if self.session is None:
            msg = "Not connected to a directory server"
            raise NotConnectedError(msg)
        return self.session

    @property
    def is_connected(self) -> bool:
        """
        ``True`` if the client has an active session.
        """
        return self.session is not None

    @property
    def bound_uri(self) -> str | None:
        """
        The URI of the server we are bound to, or ``None``.
        """
        return self.session.uri if self.session else None

    @property
    def bind_method(self) -> str | None:
        """
        How the connection is protected: ``plain``, ``LDAPS`` or
        ``StartTLS``.  ``None`` without a session.
        """
        return self.session.bind_method if self.session else None

    @property
    def login_method(self) -> str | None:
        """
        How we authenticated: ``SIMPLE``, ``DIGEST-MD5`` or ``GSSAPI``.
        ``None`` without a session.
        """
        return self.session.login_method if self.session else None

    @property
    def search_base(self) -> str | None:
        """
        The default search base of the session, or ``None``.
        """
        return self.session.search_base if self.session else None

    # -----------------------
    # Searching
    # -----------------------

    def search(
        self,
        base: str,
        scope: int,
        filterstr: str,
        attributes: Sequence[str] | None = None,
    ) -> DirectoryEntries:
        return self.searcher.search(base, scope, filterstr, attributes)

    def search_dn(
        self, base: str, filterstr: str, scope: int = ldap.SCOPE_SUBTREE
    ) -> list[str]:
        return self.searcher.search_dn(base, filterstr, scope=scope)

    def exists(self, dn: str, objectclass: str = "*") -> bool:
        return self.searcher.exists(dn, objectclass=objectclass)

    def get_object_attributes(
        self, dn: str, attributes: Sequence[str] = ("*",)
    ) -> AttributeMap:
        return self.searcher.get_object_attributes(dn, attributes)

    def get_object_attribute(self, dn: str, attribute: str) -> list[bytes]:
        return self.searcher.get_object_attribute(dn, attribute)

    # -----------------------
    # Modifying
    # -----------------------

    def add_value(self, dn: str, attribute: str, values: Values) -> None:
        self.mutator.add_value(dn, attribute, values)

    def delete_value(self, dn: str, attribute: str, values: Values = None) -> None:
        self.mutator.delete_value(dn, attribute, values)

    def replace_value(self, dn: str, attribute: str, values: Values) -> None:
        self.mutator.replace_value(dn, attribute, values)

    def set_attribute(self, dn: str, attribute: str, values: Values) -> None:
        self.mutator.set_attribute(dn, attribute, values)

    def clear_attribute(self, dn: str, attribute: str) -> None:
        self.mutator.clear_attribute(dn, attribute)

    def rename_object(self, dn: str, new_cn: str) -> None:
        self.mutator.rename_object(dn, new_cn)

    def move_object(self, dn: str, new_container: str) -> None:
        self.mutator.move_object(dn, new_container)

    def delete_dn(self, dn: str) -> None:
        self.mutator.delete_dn(dn)
