"""
Caller facing interfaces for GitDigger.
"""

from .api import GitDigger, sync, classify

__all__ = ["GitDigger", "sync", "classify"]
