"""Observer registries."""

from activity_roster.adapters.observers.observable import Observable, ObserverSubscription

__all__ = ["Observable", "ObserverSubscription"]
