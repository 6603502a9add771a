"""uv integration: locking, building and publishing."""

from pylerna.uv.client import get_uv_executable, run_uv, run_uv_async
from pylerna.uv.lock import lock
from pylerna.uv.publish import UvRegistryClient

__all__ = [
    "UvRegistryClient",
    "get_uv_executable",
    "lock",
    "run_uv",
    "run_uv_async",
]
