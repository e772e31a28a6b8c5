"""
Provider abstraction and synchronization engine.
"""

from .identifier import ProviderIdentifier, classify, resolve
from .normalizer import normalize
from .clone_manager import CloneManager, CloneAction
from .orchestrator import SyncOrchestrator

__all__ = [
    "ProviderIdentifier",
    "classify",
    "resolve",
    "normalize",
    "CloneManager",
    "CloneAction",
    "SyncOrchestrator",
]
