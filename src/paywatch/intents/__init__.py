"""Payment intent storage, life cycle and cleanup."""

from paywatch.intents.lifecycle import LifecycleController, generate_intent_id
from paywatch.intents.store import IntentStore
from paywatch.intents.sweeper import IntentSweeper

__all__ = [
    "IntentStore",
    "IntentSweeper",
    "LifecycleController",
    "generate_intent_id",
]
