# The docker build writes these constants into a _version.py file. When it
# is present we expose them, so they end up in the user agent we send to
# Libris.

try:
    from palace.ill._version import __version__
except (ModuleNotFoundError, ImportError):
    __version__ = None

try:
    from palace.ill._version import __commit__
except (ModuleNotFoundError, ImportError):
    __commit__ = None

__all__ = ["__version__", "__commit__"]
