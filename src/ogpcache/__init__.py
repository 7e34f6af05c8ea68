"""ogpcache: revalidating Open Graph metadata and preview-card cache.

The distribution version is logged at startup and sent to origins as part of
the default User-Agent, so origin operators can tell releases apart.
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("ogpcache")
except PackageNotFoundError:
    # Running from a source checkout that was never installed
    __version__ = "0.0.0+unknown"

DEFAULT_USER_AGENT = f"ogpcache/{__version__}"
