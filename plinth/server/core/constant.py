"""Server constants."""

from plinth import __version__

PROJECT_NAME = "Plinth"
API_PREFIX = "/_plinth"
VERSION = __version__
