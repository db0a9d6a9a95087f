"""
Structural operations on distinguished names.

None of these functions talk to a server.
"""

from ldap.dn import escape_dn_chars, str2dn

from adclient import ldap

from .exceptions import FormatError
from .typing import ExplodedDN


def explode_dn(dn: str) -> ExplodedDN:
    """
    Split ``dn`` into ``(attribute, value)`` pairs, most specific first.

    Values are unescaped.  For multi-valued RDNs only the first
    attribute/value assertion is kept.

    Example:
        >>> explode_dn("CN=Bob,OU=Users,DC=example,DC=com")
        [('CN', 'Bob'), ('OU', 'Users'), ('DC', 'example'), ('DC', 'com')]

    Args:
        dn: the distinguished name

    Raises:
        FormatError: ``dn`` is empty or not a valid LDAPv3 DN

    Returns:
        The list of pairs.

    """
    if not dn or not dn.strip():
        msg = "Wrong DN syntax: empty DN"
        raise FormatError(msg)
    try:
        rdns = str2dn(dn)
    except ldap.DECODING_ERROR as e:
        msg = f"Wrong DN syntax: {dn}"
        raise FormatError(msg) from e
    return [(rdn[0][0], rdn[0][1]) for rdn in rdns]


def merge_dn(exploded: ExplodedDN) -> str:
    """
    The inverse of :py:func:`explode_dn`: join ``attribute=value`` components
    with commas, in the given order, escaping values as needed.
    """
    return ",".join(f"{attr}={escape_dn_chars(value)}" for attr, value in exploded)


def rdn(dn: str) -> str:
    """Return the first (most specific) component of ``dn``."""
    return merge_dn(explode_dn(dn)[:1])


def parent_dn(dn: str) -> str:
    """Return ``dn`` without its first component."""
    return merge_dn(explode_dn(dn)[1:])


def domain_to_dn(domain: str) -> str:
    """
    Convert a DNS domain to its naming context.

    Example:
        >>> domain_to_dn("example.com")
        'DC=example,DC=com'

    """
    return ",".join(f"DC={label}" for label in domain.strip(".").split(".") if label)


def dn_to_domain(dn: str) -> str:
    """
    Convert a DN to a DNS domain by joining, in order, the values of all of
    its ``DC`` components.

    Example:
        >>> dn_to_domain("CN=Bob,OU=Users,DC=example,DC=com")
        'example.com'

    Raises:
        FormatError: ``dn`` is not a valid DN

    """
    return ".".join(value for attr, value in explode_dn(dn) if attr.upper() == "DC")
