"""
MVC layer of Plinth.

Public entry points:
    Application: The front controller (an ASGI app).
    Controller: Base class of application controllers.
    View: Template variables and rendering of one action.
"""

from .application import Application
from .controller import Controller
from .view import View

__all__ = ["Application", "Controller", "View"]
