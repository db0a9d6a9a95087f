# mypy: disable-error-code="attr-defined"
"""
Attribute and object modifications over an established session.
"""

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

from ldap.dn import escape_dn_chars

from adclient import ldap

from .conf import null_logger
from .dn import explode_dn, merge_dn
from .exceptions import ConfigError, OperationalError, ldap_error_code, ldap_error_message
from .typing import ModifyModList

if TYPE_CHECKING:
    from .client import ADClient

#: what callers may pass as attribute values
Values = str | bytes | Iterable[str | bytes] | None


def encode_values(values: Values) -> list[bytes] | None:
    """
    Normalize ``values`` to the list of bytes python-ldap wants.  Strings are
    UTF-8 encoded.  ``None`` and empty lists become ``None``.
    """
    if values is None:
        return None
    if isinstance(values, (str, bytes)):
        values = [values]
    encoded = [v.encode("utf-8") if isinstance(v, str) else bytes(v) for v in values]
    return encoded or None


class AttributeMutator:
    """
    Every operation checks for an active session before building its request
    and sends exactly one request to the server.
    """

    def __init__(self, client: "ADClient", logger: logging.Logger | None = None) -> None:
        self.client = client
        self.logger = logger or null_logger

    def _modify(self, dn: str, modlist: ModifyModList) -> None:
        session = self.client.require_session()
        try:
            self.client.transport.modify(session.handle, dn, modlist)
        except ldap.LDAPError as e:
            msg = f"Error in modify {dn}: {ldap_error_message(e)}"
            raise OperationalError(msg, code=ldap_error_code(e)) from e
        self.logger.info(
            "adclient.mutator.modify dn=%s changes=%s",
            dn,
            [(op, attr) for op, attr, _ in modlist],
        )

    def _rename(self, dn: str, newrdn: str, newsuperior: str | None = None) -> None:
        session = self.client.require_session()
        try:
            self.client.transport.rename(
                session.handle, dn, newrdn, newsuperior=newsuperior, delold=True
            )
        except ldap.LDAPError as e:
            msg = f"Error in rename {dn}: {ldap_error_message(e)}"
            raise OperationalError(msg, code=ldap_error_code(e)) from e
        self.logger.info(
            "adclient.mutator.rename dn=%s newrdn=%s newsuperior=%s", dn, newrdn, newsuperior
        )

    def add_value(self, dn: str, attribute: str, values: Values) -> None:
        """
        Add ``values`` to ``attribute`` of ``dn``.

        Raises:
            NotConnectedError: there is no active session
            OperationalError: the server rejected the change

        """
        self.client.require_session()
        self._modify(dn, [(ldap.MOD_ADD, attribute, encode_values(values))])

    def delete_value(self, dn: str, attribute: str, values: Values = None) -> None:
        """
        Remove ``values`` from ``attribute`` of ``dn``.  With no values the
        whole attribute is removed.

        Raises:
            NotConnectedError: there is no active session
            OperationalError: the server rejected the change

        """
        self.client.require_session()
        self._modify(dn, [(ldap.MOD_DELETE, attribute, encode_values(values))])

    def replace_value(self, dn: str, attribute: str, values: Values) -> None:
        """
        Replace the whole value set of ``attribute`` of ``dn`` in one request.

        Raises:
            NotConnectedError: there is no active session
            OperationalError: the server rejected the change

        """
        self.client.require_session()
        self._modify(dn, [(ldap.MOD_REPLACE, attribute, encode_values(values))])

    def set_attribute(self, dn: str, attribute: str, values: Values) -> None:
        self.replace_value(dn, attribute, values)

    def clear_attribute(self, dn: str, attribute: str) -> None:
        self.delete_value(dn, attribute)

    def rename_object(self, dn: str, new_cn: str) -> None:
        """
        Rename ``dn`` to ``CN=<new_cn>`` in the same container.

        Raises:
            NotConnectedError: there is no active session
            OperationalError: the server rejected the rename

        """
        self.client.require_session()
        self._rename(dn, f"CN={escape_dn_chars(new_cn)}")

    def move_object(self, dn: str, new_container: str) -> None:
        """
        Move ``dn`` into ``new_container``, keeping its RDN.

        Raises:
            NotConnectedError: there is no active session
            ConfigError: ``new_container`` does not exist
            FormatError: ``dn`` is not a valid DN
            OperationalError: the server rejected the move

        """
        self.client.require_session()
        if not self.client.searcher.exists(new_container):
            msg = f"Destination OU does not exist: {new_container}"
            raise ConfigError(msg)
        newrdn = merge_dn(explode_dn(dn)[:1])
        self._rename(dn, newrdn, newsuperior=new_container)

    def delete_dn(self, dn: str) -> None:
        """
        Delete the entry ``dn``.

        Raises:
            NotConnectedError: there is no active session
            OperationalError: the server rejected the delete

        """
        session = self.client.require_session()
        try:
            self.client.transport.delete(session.handle, dn)
        except ldap.LDAPError as e:
            msg = f"Error in delete {dn}: {ldap_error_message(e)}"
            raise OperationalError(msg, code=ldap_error_code(e)) from e
        self.logger.info("adclient.mutator.delete dn=%s", dn)
