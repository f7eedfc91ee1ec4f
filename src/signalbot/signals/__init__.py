"""Signal orchestration: single-symbol and batch pipelines plus the cooldown cache."""

from signalbot.signals.cooldown import CooldownCache, ReadWriteLock
from signalbot.signals.orchestrator import SignalOrchestrator

__all__ = ["CooldownCache", "ReadWriteLock", "SignalOrchestrator"]
