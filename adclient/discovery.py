"""
Directory server discovery through DNS service (SRV) records.

:py:func:`parse_service_response` decodes a raw DNS response message itself;
the resolver is only asked for the bytes of the response.
"""

import logging
import struct
from typing import NamedTuple, Protocol

import dns.exception
import dns.resolver

from .conf import get_dns_timeout, null_logger
from .exceptions import DNSDecodeError, ResolutionError

#: Service name for every directory server of a domain.
LDAP_SRV_FORMAT = "_ldap._tcp.{domain}"
#: Service name for the directory servers of a single site.
LDAP_SITE_SRV_FORMAT = "_ldap._tcp.{site}._sites.{domain}"

SRV_RECORD_TYPE: int = 33
HEADER_SIZE: int = 12
#: type + class of a question entry
QUESTION_FIXED_SIZE: int = 4
MAX_MESSAGE_SIZE: int = 65535
MAX_NAME_LENGTH: int = 255


class ServiceRecord(NamedTuple):
    priority: int
    weight: int
    port: int
    target: str


class DNSResolver(Protocol):
    """
    Anything that can send a DNS query and hand back the raw response.
    """

    def query(self, name: str, record_type: str) -> bytes:
        """
        Raises:
            ResolutionError: the lookup failed
        """
        ...


class DNSPythonResolver:
    """
    :py:class:`DNSResolver` backed by dnspython.

    Keyword Args:
        nameservers: override the nameservers from ``/etc/resolv.conf``
        timeout: total seconds to spend on a lookup
        max_size: largest response message we accept

    """

    def __init__(
        self,
        nameservers: list[str] | None = None,
        timeout: float | None = None,
        max_size: int = MAX_MESSAGE_SIZE,
    ) -> None:
        self.resolver = dns.resolver.Resolver()
        if nameservers:
            self.resolver.nameservers = list(nameservers)
        if timeout is None:
            timeout = get_dns_timeout()
        self.resolver.lifetime = float(timeout)
        self.max_size = max_size

    def query(self, name: str, record_type: str = "SRV") -> bytes:
        try:
            answer = self.resolver.resolve(
                name, record_type, search=True, raise_on_no_answer=False
            )
            return answer.response.to_wire(max_size=self.max_size)
        except dns.exception.DNSException as e:
            msg = f"Error while resolving {name}: {e}"
            raise ResolutionError(msg) from e


class _Cursor:
    """
    Read position over an immutable DNS message.  Every read is bounds
    checked and raises :py:exc:`DNSDecodeError` instead of running past the
    end of the message.
    """

    def __init__(self, message: bytes, offset: int = 0) -> None:
        self.message = message
        self.offset = offset

    def _require(self, size: int, what: str) -> None:
        if self.offset + size > len(self.message):
            msg = f"{what} runs past the end of the message at offset {self.offset}"
            raise DNSDecodeError(msg)

    def skip(self, size: int, what: str = "field") -> None:
        self._require(size, what)
        self.offset += size

    def seek(self, offset: int) -> None:
        if offset > len(self.message):
            msg = f"offset {offset} is past the end of the message"
            raise DNSDecodeError(msg)
        self.offset = offset

    def read_u16(self, what: str = "16-bit field") -> int:
        self._require(2, what)
        (value,) = struct.unpack_from("!H", self.message, self.offset)
        self.offset += 2
        return value

    def read_u32(self, what: str = "32-bit field") -> int:
        self._require(4, what)
        (value,) = struct.unpack_from("!I", self.message, self.offset)
        self.offset += 4
        return value

    def read_name(self) -> str:
        """
        Decompress the domain name at the cursor and advance past it.

        Compression pointers must point backwards, which also rules out
        pointer loops.
        """
        message = self.message
        labels: list[str] = []
        position = self.offset
        resume: int | None = None
        length = 0
        while True:
            if position >= len(message):
                msg = f"name at offset {self.offset} runs past the end of the message"
                raise DNSDecodeError(msg)
            size = message[position]
            if size & 0xC0 == 0xC0:
                if position + 1 >= len(message):
                    msg = f"compression pointer at offset {position} is truncated"
                    raise DNSDecodeError(msg)
                pointer = ((size & 0x3F) << 8) | message[position + 1]
                if pointer >= position:
                    msg = f"compression pointer at offset {position} does not point backwards"
                    raise DNSDecodeError(msg)
                if resume is None:
                    resume = position + 2
                position = pointer
                continue
            if size & 0xC0:
                msg = f"reserved label type at offset {position}"
                raise DNSDecodeError(msg)
            position += 1
            if size == 0:
                break
            if position + size > len(message):
                msg = f"label at offset {position - 1} runs past the end of the message"
                raise DNSDecodeError(msg)
            length += size + 1
            if length > MAX_NAME_LENGTH:
                msg = f"name at offset {self.offset} is longer than {MAX_NAME_LENGTH} octets"
                raise DNSDecodeError(msg)
            try:
                labels.append(message[position : position + size].decode("ascii"))
            except UnicodeDecodeError as e:
                msg = f"label at offset {position - 1} is not ASCII"
                raise DNSDecodeError(msg) from e
            position += size
        self.offset = resume if resume is not None else position
        return ".".join(labels)


def parse_service_response(message: bytes) -> list[ServiceRecord]:
    """
    Decode the SRV records in the answer section of a DNS response message.

    Answers of other types (e.g. CNAMEs) are skipped.  Records are returned
    in response order.

    Args:
        message: the DNS response, as received on the wire

    Raises:
        DNSDecodeError: the message is truncated or malformed

    Returns:
        The service records, possibly an empty list.

    """
    cursor = _Cursor(bytes(message))
    # id, flags
    cursor.skip(4, "header")
    question_count = cursor.read_u16("header")
    answer_count = cursor.read_u16("header")
    # authority and additional counts
    cursor.skip(HEADER_SIZE - 8, "header")

    for _ in range(question_count):
        cursor.read_name()
        cursor.skip(QUESTION_FIXED_SIZE, "question")

    records: list[ServiceRecord] = []
    for _ in range(answer_count):
        cursor.read_name()
        record_type = cursor.read_u16("record type")
        cursor.read_u16("record class")
        cursor.read_u32("record ttl")
        data_length = cursor.read_u16("record data length")
        end = cursor.offset + data_length
        if end > len(cursor.message):
            msg = f"record data at offset {cursor.offset} overruns the message"
            raise DNSDecodeError(msg)
        if record_type != SRV_RECORD_TYPE:
            cursor.seek(end)
            continue
        # priority, weight and port, then at least the root label of the target
        if data_length < 7:
            msg = f"SRV record data at offset {cursor.offset} is only {data_length} octets"
            raise DNSDecodeError(msg)
        priority = cursor.read_u16("SRV priority")
        weight = cursor.read_u16("SRV weight")
        port = cursor.read_u16("SRV port")
        target = cursor.read_name()
        if cursor.offset > end:
            msg = f"SRV target at offset {end - data_length + 6} runs past its record data"
            raise DNSDecodeError(msg)
        records.append(ServiceRecord(priority, weight, port, target))
        cursor.seek(end)
    return records


def _lookup_hosts(resolver: DNSResolver, name: str) -> list[str]:
    return [record.target for record in parse_service_response(resolver.query(name, "SRV"))]


def resolve_servers(
    domain: str,
    site: str | None = None,
    resolver: DNSResolver | None = None,
    logger: logging.Logger | None = None,
) -> list[str]:
    """
    Find the directory servers for ``domain``.

    Servers of ``site`` come first, followed by the remaining servers of the
    domain.  Hosts are kept in response order; SRV priority and weight do
    not reorder them.

    Args:
        domain: DNS domain of the directory

    Keyword Args:
        site: prefer servers of this site
        resolver: DNS resolver to use; defaults to :py:class:`DNSPythonResolver`
        logger: where to log

    Raises:
        ResolutionError: the domain-wide lookup failed.  Failure of the
            site lookup is logged and ignored.

    Returns:
        Deduplicated host names.

    """
    logger = logger or null_logger
    resolver = resolver or DNSPythonResolver()
    servers: list[str] = []

    def extend(hosts: list[str]) -> None:
        for host in hosts:
            if host not in servers:
                servers.append(host)

    if site:
        name = LDAP_SITE_SRV_FORMAT.format(site=site, domain=domain)
        try:
            extend(_lookup_hosts(resolver, name))
        except ResolutionError as e:
            logger.warning("adclient.discovery.site.failed name=%s error=%s", name, e)

    name = LDAP_SRV_FORMAT.format(domain=domain)
    extend(_lookup_hosts(resolver, name))
    logger.debug("adclient.discovery.resolved domain=%s servers=%s", domain, servers)
    return servers
