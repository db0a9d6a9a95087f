from .client import ADClient, Session
from .exceptions import (
    ADClientError,
    AttributeNotFound,
    BindError,
    ConfigError,
    DNSDecodeError,
    FormatError,
    NotConnectedError,
    NotFound,
    OperationalError,
    ResolutionError,
    SearchError,
)
from .params import ConnectionParams

__version__ = "1.0.0"
