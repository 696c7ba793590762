"""Player-side driver: proving on a worker pool, ledger submission, notifications."""

from .feed import NotificationFeed
from .orchestrator import GameOrchestrator, ProofTask

__all__ = ["GameOrchestrator", "NotificationFeed", "ProofTask"]
