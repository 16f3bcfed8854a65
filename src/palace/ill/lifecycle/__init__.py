from palace.ill.lifecycle.backend import LibrisBackend
from palace.ill.lifecycle.lifecycle import RequestLifecycle
from palace.ill.lifecycle.outcome import NextView, Outcome, Phase

__all__ = ["LibrisBackend", "NextView", "Outcome", "Phase", "RequestLifecycle"]
