"""Remote-access HTTP mirror."""

from .security import RemoteAuth
from .server import create_app, serve

__all__ = ['RemoteAuth', 'create_app', 'serve']
