# mypy: disable-error-code="attr-defined"
"""
Paged searches over an established session.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ldap.cidict import cidict
from ldap.controls import SimplePagedResultsControl
from ldap_filter import Filter

from adclient import ldap

from .conf import get_page_size, null_logger
from .exceptions import (
    AttributeNotFound,
    ConfigError,
    NotFound,
    SearchError,
    ldap_error_code,
    ldap_error_message,
)
from .typing import AttributeMap, DirectoryEntries

if TYPE_CHECKING:
    from .client import ADClient

#: Upper bound on the number of attributes requested in one search.
MAX_ATTRIBUTES: int = 50
#: Request no attribute values at all, just DNs.
NO_ATTRIBUTES: str = "1.1"


@dataclass
class PageState:
    cookie: bytes = b""
    #: the server's estimate of the total result size; AD usually sends 0
    total: int = 0
    round_trips: int = 0

    @property
    def done(self) -> bool:
        return self.round_trips > 0 and not self.cookie


def _get_pctrls(serverctrls):
    return [
        c
        for c in serverctrls
        if c.controlType == SimplePagedResultsControl.controlType
    ]


def object_class_filter(objectclass: str = "*") -> str:
    """
    Build ``(objectclass=<objectclass>)``, or a presence filter for ``*``.
    """
    if objectclass == "*":
        return Filter.attribute("objectclass").present().to_string()
    return Filter.attribute("objectclass").equal_to(objectclass).to_string()


class PagedSearch:
    """
    Runs searches with the simple paged results control, following the
    server's cookie until the result set is exhausted.

    Args:
        client: the client whose session we search with

    Keyword Args:
        page_size: entries per round trip; defaults to
            ``settings.ADCLIENT_PAGE_SIZE``, then 2
        logger: where to log

    Raises:
        ConfigError: ``page_size`` is less than 1

    """

    def __init__(
        self,
        client: "ADClient",
        page_size: int | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.client = client
        self.page_size = page_size if page_size is not None else get_page_size()
        if self.page_size < 1:
            msg = f"page_size must be a positive integer, got {self.page_size}"
            raise ConfigError(msg)
        self.logger = logger or null_logger

    def search(
        self,
        base: str,
        scope: int,
        filterstr: str,
        attributes: Sequence[str] | None = None,
    ) -> DirectoryEntries:
        """
        Search under ``base`` and collect every matching entry.

        Backslashes in ``filterstr`` are doubled; nothing else is escaped, so
        the caller must escape assertion values (see
        :py:func:`ldap.filter.escape_filter_chars`).

        Args:
            base: the search base DN
            scope: one of ``ldap.SCOPE_BASE``, ``ldap.SCOPE_ONELEVEL`` or
                ``ldap.SCOPE_SUBTREE``
            filterstr: the LDAP filter

        Keyword Args:
            attributes: which attributes to return; ``None`` means all
                user attributes

        Raises:
            NotConnectedError: there is no active session
            ConfigError: more than :py:data:`MAX_ATTRIBUTES` attributes were
                requested
            NotFound: nothing matched
            SearchError: the server rejected a request or did not return a
                paged results control

        Returns:
            A dict mapping DN to attribute map.  A DN returned on more than
            one page keeps its last attribute map.

        """
        session = self.client.require_session()
        attrlist = list(attributes) if attributes is not None else None
        if attrlist is not None and len(attrlist) > MAX_ATTRIBUTES:
            msg = (
                f"Too many attributes requested: {len(attrlist)}, "
                f"the maximum is {MAX_ATTRIBUTES}"
            )
            raise ConfigError(msg)
        filterstr = filterstr.replace("\\", "\\\\")

        state = PageState()
        results: DirectoryEntries = {}
        while True:
            paging = SimplePagedResultsControl(True, size=self.page_size, cookie=state.cookie)  # noqa: FBT003
            try:
                rdata, serverctrls = self.client.transport.search(
                    session.handle,
                    base,
                    scope,
                    filterstr,
                    attrlist,
                    serverctrls=[paging],
                )
            except ldap.LDAPError as e:
                msg = f"Error in paged search: {ldap_error_message(e)}"
                raise SearchError(msg, code=ldap_error_code(e)) from e
            state.round_trips += 1

            count = 0
            for dn, attrs in rdata:
                # AD returns search references along with the entries; skip them
                if isinstance(attrs, dict):
                    results[dn] = attrs
                    count += 1
            if state.round_trips == 1 and count == 0:
                msg = f"{filterstr} not found"
                raise NotFound(msg)

            paged_controls = _get_pctrls(serverctrls)
            if not paged_controls:
                msg = "Server ignored RFC 2696 control"
                raise SearchError(msg)
            state.cookie = paged_controls[0].cookie or b""
            state.total = paged_controls[0].size or 0
            if state.done:
                break

        self.logger.debug(
            "adclient.search.done base=%s filter=%s entries=%d round_trips=%d",
            base,
            filterstr,
            len(results),
            state.round_trips,
        )
        return results

    def search_dn(
        self, base: str, filterstr: str, scope: int = ldap.SCOPE_SUBTREE
    ) -> list[str]:
        """
        Return the DNs of the entries matching ``filterstr``, fetching no
        attribute values.
        """
        return list(self.search(base, scope, filterstr, [NO_ATTRIBUTES]))

    def exists(self, dn: str, objectclass: str = "*") -> bool:
        """
        Check whether ``dn`` can be searched.

        A subtree search under ``dn`` for ``objectclass`` that the server
        answers without error counts as existence, even if nothing matched.

        Raises:
            NotConnectedError: there is no active session

        """
        session = self.client.require_session()
        try:
            self.client.transport.search(
                session.handle,
                dn,
                ldap.SCOPE_SUBTREE,
                object_class_filter(objectclass),
                [NO_ATTRIBUTES],
                attrsonly=1,
            )
        except ldap.LDAPError as e:
            self.logger.debug(
                "adclient.search.exists.failed dn=%s error=%s", dn, ldap_error_message(e)
            )
            return False
        return True

    def get_object_attributes(
        self, dn: str, attributes: Sequence[str] = ("*",)
    ) -> AttributeMap:
        """
        Fetch the attributes of the single entry ``dn``.

        Raises:
            NotConnectedError: there is no active session
            NotFound: ``dn`` does not exist
            SearchError: the search failed

        Returns:
            The attribute map, which is empty if the server returned ``dn``
            under a different spelling.

        """
        entries = self.search(dn, ldap.SCOPE_BASE, object_class_filter(), attributes)
        return entries.get(dn, {})

    def get_object_attribute(self, dn: str, attribute: str) -> list[bytes]:
        """
        Fetch the values of one attribute of ``dn``.  Attribute names are
        matched case-insensitively.

        Raises:
            AttributeNotFound: ``dn`` has no ``attribute``

        """
        attrs = cidict(self.get_object_attributes(dn, [attribute]))
        if attribute not in attrs:
            msg = f"{attribute} not found in {dn}"
            raise AttributeNotFound(msg)
        return attrs[attribute]
