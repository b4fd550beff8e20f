from .client import AIClient, strip_think_tags
from .auth import validate_engine

__all__ = ['AIClient', 'strip_think_tags', 'validate_engine']
