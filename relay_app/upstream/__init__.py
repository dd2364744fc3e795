"""Connection to the trading backend."""

from .backoff import ExponentialBackoff
from .link import LinkState, UpstreamLink
from .transport import UpstreamTransport

__all__ = ["ExponentialBackoff", "LinkState", "UpstreamLink", "UpstreamTransport"]
