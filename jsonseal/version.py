"""Version resolution for package metadata and the envelope format."""

from importlib.metadata import PackageNotFoundError, version as _package_version

from .cipher import VERSION_TAG

ENVELOPE_VERSION = VERSION_TAG.decode("ascii")

try:
    __version__ = _package_version("jsonseal")
except PackageNotFoundError:
    __version__ = "0.0.0"


__all__ = ["ENVELOPE_VERSION", "__version__"]
