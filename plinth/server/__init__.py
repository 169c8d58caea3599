"""
Plinth Server Package.

This package hosts the MVC front controller inside a FastAPI application.

Subpackages:
    api: Health and version endpoints.
    core: Settings and constants.
    exception_handlers: Global exception handling.
    middleware: Request timing middleware.
"""
