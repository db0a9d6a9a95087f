"""
Connection parameters for :py:class:`adclient.client.ADClient`.
"""

from dataclasses import dataclass, field
from typing import Any

from django.conf import settings

from .exceptions import ConfigError

#: Sentinel used by ``network_timeout`` and ``server_time_limit``.
UNSET: int = -1


@dataclass
class ConnectionParams:
    """
    Everything :py:meth:`adclient.client.ADClient.connect` needs to establish
    a session.

    ``candidate_servers`` holds LDAP URIs or bare host names, tried in order.
    When it is empty the servers are discovered from ``domain`` (and
    ``site``) via DNS service records.
    """

    #: DNS domain (and Kerberos realm, upper cased) of the directory
    domain: str = ""
    #: optional site name, used to prefer site-local servers during discovery
    site: str = ""
    candidate_servers: list[str] = field(default_factory=list)
    #: bind DN, UPN or SASL authentication id
    bind_identity: str = ""
    bind_secret: str = field(default="", repr=False)
    search_base: str = ""
    #: use SASL (DIGEST-MD5 or GSSAPI) instead of a simple bind
    secured: bool = True
    use_gssapi: bool = False
    use_tls: bool = False
    use_ldaps: bool = False
    #: seconds, or -1 to leave the library default alone
    network_timeout: float = UNSET
    #: seconds the server may spend on a request, or -1 for no limit
    server_time_limit: int = UNSET

    def validate(self) -> None:
        """
        Reject contradictory parameters before any network activity.

        Raises:
            ConfigError: ``use_tls`` and ``use_ldaps`` are both set, or there
                are neither candidate servers nor a domain to discover them
                from.

        """
        if self.use_tls and self.use_ldaps:
            msg = "Error in passed params: use_ldaps and use_tls are mutually exclusive"
            raise ConfigError(msg)
        if not self.candidate_servers and not self.domain:
            msg = "No suitable connection params found: no servers and no domain"
            raise ConfigError(msg)

    @property
    def bind_method(self) -> str:
        """
        The channel protection in use: ``StartTLS``, ``LDAPS`` or ``plain``.
        """
        if self.use_tls:
            return "StartTLS"
        if self.use_ldaps:
            return "LDAPS"
        return "plain"

    @classmethod
    def from_dict(cls, config: dict[str, Any]) -> "ConnectionParams":
        """
        Build parameters from a dict laid out like an entry of
        ``settings.LDAP_SERVERS``.

        Args:
            config: the configuration dict

        Returns:
            A new :py:class:`ConnectionParams`.

        """
        urls = config.get("urls")
        if urls is None:
            urls = [config["url"]] if config.get("url") else []
        elif isinstance(urls, str):
            urls = [urls]
        return cls(
            domain=config.get("domain", ""),
            site=config.get("site", ""),
            candidate_servers=list(urls),
            bind_identity=config.get("user", ""),
            bind_secret=config.get("password", ""),
            search_base=config.get("basedn", ""),
            secured=config.get("secured", True),
            use_gssapi=config.get("use_gssapi", False),
            use_tls=config.get("use_starttls", False),
            use_ldaps=config.get("use_ldaps", False),
            network_timeout=config.get("timeout", UNSET),
            server_time_limit=config.get("timelimit", UNSET),
        )

    @classmethod
    def from_settings(cls, key: str = "default") -> "ConnectionParams":
        """
        Build parameters from ``settings.LDAP_SERVERS[key]``.

        Args:
            key: which server configuration to use

        Raises:
            ConfigError: Django settings are not configured,
                ``settings.LDAP_SERVERS`` does not exist, or it has no ``key``

        Returns:
            A new :py:class:`ConnectionParams`.

        """
        if not settings.configured:
            msg = "Django settings are not configured"
            raise ConfigError(msg)
        try:
            config = settings.LDAP_SERVERS[key]
        except AttributeError as e:
            msg = "settings.LDAP_SERVERS does not exist!"
            raise ConfigError(msg) from e
        except KeyError as e:
            msg = f"settings.LDAP_SERVERS has no key '{key}'"
            raise ConfigError(msg) from e
        return cls.from_dict(config)
