# mypy: disable-error-code="attr-defined"
# type: ignore
"""
A recording in-memory :py:class:`adclient.transport.DirectoryTransport` and a
canned DNS resolver, for tests that need to count or inspect requests.
"""

import struct

import ldap
from ldap.controls import SimplePagedResultsControl

from adclient.exceptions import CredentialError, ResolutionError


class FakeHandle:
    def __init__(self, uri):
        self.uri = uri
        self.options = {}
        self.tls = False
        self.bound = False
        self.unbound = False


class FakeTransport:
    """
    Serves ``entries`` (DN -> attribute map) page by page.  Every call is
    appended to :py:attr:`calls` as ``(method name, args)``.

    Keyword Args:
        entries: the directory contents
        fail_open: URIs for which ``open`` raises ``ldap.SERVER_DOWN``
        fail_bind: URIs for which ``authenticate`` raises
            ``ldap.INVALID_CREDENTIALS``
        fail_tls: URIs for which ``start_tls`` raises ``ldap.CONNECT_ERROR``
        paged: if ``False``, never return a paged results control
        referrals: search references appended to every page

    :py:attr:`search_error` is raised by every search, or only by search
    number :py:attr:`search_error_at` (counting from 1) when that is set.
    Likewise search number :py:attr:`unpaged_at` comes back without a paged
    results control.

    """

    def __init__(
        self,
        entries=None,
        fail_open=(),
        fail_bind=(),
        fail_tls=(),
        paged=True,
        referrals=None,
    ):
        self.entries = dict(entries or {})
        self.fail_open = set(fail_open)
        self.fail_bind = set(fail_bind)
        self.fail_tls = set(fail_tls)
        self.paged = paged
        self.referrals = list(referrals or [])
        self.search_error = None
        self.search_error_at = None
        self.unpaged_at = None
        self.search_count = 0
        self.modify_error = None
        self.missing = set()
        self.handles = []
        self.calls = []

    def calls_named(self, name):
        return [args for method, args in self.calls if method == name]

    def open(self, uri):
        self.calls.append(("open", (uri,)))
        if uri in self.fail_open:
            raise ldap.SERVER_DOWN({"desc": "Can't contact LDAP server", "result": -1})
        handle = FakeHandle(uri)
        self.handles.append(handle)
        return handle

    def set_option(self, handle, option, value):
        self.calls.append(("set_option", (handle, option, value)))
        handle.options[option] = value

    def start_tls(self, handle):
        self.calls.append(("start_tls", (handle,)))
        if handle.uri in self.fail_tls:
            raise ldap.CONNECT_ERROR({"desc": "Connect error", "result": -11})
        handle.tls = True

    def authenticate(self, handle, mechanism, identity=None, secret=None):
        self.calls.append(("authenticate", (handle, mechanism, identity, secret)))
        if handle.uri in self.fail_bind:
            raise ldap.INVALID_CREDENTIALS(
                {"desc": "Invalid credentials", "info": "80090308: LdapErr", "result": 49}
            )
        handle.bound = True

    def _matches(self, base):
        if base.lower() in self.missing:
            raise ldap.NO_SUCH_OBJECT({"desc": "No such object", "result": 32})
        return [
            (dn, attrs)
            for dn, attrs in self.entries.items()
            if dn.lower() == base.lower() or dn.lower().endswith("," + base.lower())
        ]

    def search(
        self, handle, base, scope, filterstr, attrlist, serverctrls=None, attrsonly=0
    ):
        self.calls.append(
            ("search", (handle, base, scope, filterstr, attrlist, serverctrls, attrsonly))
        )
        self.search_count += 1
        if self.search_error is not None and self.search_error_at in (
            None,
            self.search_count,
        ):
            raise self.search_error
        matches = self._matches(base)
        if scope == ldap.SCOPE_BASE:
            matches = [(dn, attrs) for dn, attrs in matches if dn.lower() == base.lower()]
        request = None
        for ctrl in serverctrls or []:
            if ctrl.controlType == SimplePagedResultsControl.controlType:
                request = ctrl
        if request is None:
            return matches + self.referrals, []
        offset = int(request.cookie) if request.cookie else 0
        page = matches[offset : offset + request.size]
        following = offset + request.size
        cookie = str(following).encode() if following < len(matches) else b""
        if not self.paged or self.unpaged_at == self.search_count:
            return page + self.referrals, []
        response = SimplePagedResultsControl(True, size=len(matches), cookie=cookie)
        return page + self.referrals, [response]

    def modify(self, handle, dn, modlist):
        self.calls.append(("modify", (handle, dn, modlist)))
        if self.modify_error is not None:
            raise self.modify_error

    def rename(self, handle, dn, newrdn, newsuperior=None, delold=True):
        self.calls.append(("rename", (handle, dn, newrdn, newsuperior, delold)))
        if self.modify_error is not None:
            raise self.modify_error

    def delete(self, handle, dn):
        self.calls.append(("delete", (handle, dn)))
        if self.modify_error is not None:
            raise self.modify_error

    def unbind(self, handle):
        self.calls.append(("unbind", (handle,)))
        handle.unbound = True


class FakeCredentialProvider:
    def __init__(self, fail=False):
        self.fail = fail
        self.acquired = []
        self.released = []

    def acquire(self, domain):
        if self.fail:
            msg = f"No ticket for {domain.upper()}"
            raise CredentialError(msg)
        handle = f"creds:{domain}:{len(self.acquired)}"
        self.acquired.append(handle)
        return handle

    def release(self, handle):
        self.released.append(handle)


def encode_name(name):
    out = b""
    for label in name.split("."):
        if label:
            out += bytes([len(label)]) + label.encode("ascii")
    return out + b"\x00"


def build_srv_response(name, targets, extra_answers=()):
    """
    Build a DNS response message for ``name`` whose answer section holds one
    SRV record per ``(priority, weight, port, target)`` in ``targets``,
    preceded by ``extra_answers`` (raw, already encoded answer records).
    """
    answers = list(extra_answers)
    for priority, weight, port, target in targets:
        rdata = struct.pack("!HHH", priority, weight, port) + encode_name(target)
        # owner name is a pointer to the question name at offset 12
        answers.append(
            b"\xc0\x0c" + struct.pack("!HHIH", 33, 1, 600, len(rdata)) + rdata
        )
    header = struct.pack("!HHHHHH", 0x1234, 0x8180, 1, len(answers), 0, 0)
    question = encode_name(name) + struct.pack("!HH", 33, 1)
    return header + question + b"".join(answers)


class FakeResolver:
    """
    Answers SRV queries from ``responses`` (name -> list of target hosts).
    Names not in ``responses`` raise :py:exc:`ResolutionError`.
    """

    def __init__(self, responses):
        self.responses = responses
        self.queries = []

    def query(self, name, record_type="SRV"):
        self.queries.append((name, record_type))
        if name not in self.responses:
            msg = f"Error while resolving {name}: NXDOMAIN"
            raise ResolutionError(msg)
        targets = [(0, 100, 389, host) for host in self.responses[name]]
        return build_srv_response(name, targets)
