"""Plinth.

A small, convention-driven MVC web framework hosted on FastAPI/Starlette.

Request flow
------------

1. The front controller (``plinth.mvc.application.Application``) receives the
   request and resolves its route ``(module, controller, action, params)``
   from the path: ``/[module]/controller/action/key/value/...``.
2. The module's ``configs/config.ini`` is loaded and its error logging and
   notification handlers are installed.
3. The dispatcher loads ``<module>/controllers/<controller>.py`` and runs
   ``initialize()``, the ``<action>_action()`` method and ``render()``.
4. Views are Jinja2 templates under ``<module>/views`` wrapped in
   ``<module>/layouts/layout.html``.

Subpackages
-----------

- ``plinth.mvc``: routing, dispatch, controllers, views, sessions, config.
- ``plinth.db``: ``DbModel`` with hand-built SQL, result caching, pagination.
- ``plinth.server``: the FastAPI host application.
- ``plinth.core``: logging configuration.
"""

__version__ = "0.1.0"
