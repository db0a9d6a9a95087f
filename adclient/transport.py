# mypy: disable-error-code="attr-defined"
"""
The directory transport: the thin layer between the client and python-ldap.

Everything that puts bytes on the wire goes through a
:py:class:`DirectoryTransport`.  Errors are raised as
:py:exc:`ldap.LDAPError` subclasses and translated into
:py:mod:`adclient.exceptions` by the calling component.
"""

from typing import Any, Protocol

from ldap import sasl
from ldap.controls import LDAPControl

from adclient import ldap

from .auth import AuthMechanism, LoginMethod
from .typing import LDAPData, ModifyModList


class DirectoryTransport(Protocol):
    def open(self, uri: str) -> Any: ...

    def set_option(self, handle: Any, option: int, value: Any) -> None: ...

    def start_tls(self, handle: Any) -> None: ...

    def authenticate(
        self,
        handle: Any,
        mechanism: AuthMechanism,
        identity: str | None = None,
        secret: str | None = None,
    ) -> None: ...

    def search(
        self,
        handle: Any,
        base: str,
        scope: int,
        filterstr: str,
        attrlist: list[str] | None,
        serverctrls: list[LDAPControl] | None = None,
        attrsonly: int = 0,
    ) -> tuple[list[LDAPData], list[LDAPControl]]: ...

    def modify(self, handle: Any, dn: str, modlist: ModifyModList) -> None: ...

    def rename(
        self,
        handle: Any,
        dn: str,
        newrdn: str,
        newsuperior: str | None = None,
        delold: bool = True,
    ) -> None: ...

    def delete(self, handle: Any, dn: str) -> None: ...

    def unbind(self, handle: Any) -> None: ...


class LDAPTransport:
    """
    :py:class:`DirectoryTransport` backed by python-ldap's synchronous
    ``LDAPObject``.
    """

    def open(self, uri: str) -> ldap.ldapobject.LDAPObject:
        return ldap.initialize(uri)

    def set_option(
        self, handle: ldap.ldapobject.LDAPObject, option: int, value: Any
    ) -> None:
        handle.set_option(option, value)

    def start_tls(self, handle: ldap.ldapobject.LDAPObject) -> None:
        handle.start_tls_s()

    def authenticate(
        self,
        handle: ldap.ldapobject.LDAPObject,
        mechanism: AuthMechanism,
        identity: str | None = None,
        secret: str | None = None,
    ) -> None:
        """
        Bind ``handle`` with ``mechanism``.

        For GSSAPI the Kerberos credentials must already be available in the
        environment (see :py:class:`adclient.credentials.KeytabCredentialProvider`);
        ``identity`` and ``secret`` are ignored.
        """
        if mechanism.login_method == LoginMethod.SIMPLE:
            handle.simple_bind_s(identity or "", secret or "")
        elif mechanism.login_method == LoginMethod.DIGEST_MD5:
            handle.sasl_interactive_bind_s("", sasl.digest_md5(identity or "", secret or ""))
        else:
            handle.sasl_interactive_bind_s("", sasl.gssapi())

    def search(
        self,
        handle: ldap.ldapobject.LDAPObject,
        base: str,
        scope: int,
        filterstr: str,
        attrlist: list[str] | None,
        serverctrls: list[LDAPControl] | None = None,
        attrsonly: int = 0,
    ) -> tuple[list[LDAPData], list[LDAPControl]]:
        """
        Run one search request and wait for all of its results.

        Returns:
            ``(rdata, response_controls)``.  ``rdata`` may include referral
            results whose second element is not a dict.

        """
        msgid = handle.search_ext(
            base, scope, filterstr, attrlist, attrsonly, serverctrls=serverctrls
        )
        _, rdata, _, rctrls = handle.result3(msgid)
        return rdata, rctrls or []

    def modify(
        self, handle: ldap.ldapobject.LDAPObject, dn: str, modlist: ModifyModList
    ) -> None:
        handle.modify_s(dn, modlist)

    def rename(
        self,
        handle: ldap.ldapobject.LDAPObject,
        dn: str,
        newrdn: str,
        newsuperior: str | None = None,
        delold: bool = True,
    ) -> None:
        handle.rename_s(dn, newrdn, newsuperior, int(delold))

    def delete(self, handle: ldap.ldapobject.LDAPObject, dn: str) -> None:
        handle.delete_s(dn)

    def unbind(self, handle: ldap.ldapobject.LDAPObject) -> None:
        handle.unbind_s()
