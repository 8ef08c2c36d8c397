"""Action handler mixins for AuditNavApp."""

from .navigation_actions import NavigationActionsMixin

__all__ = [
    "NavigationActionsMixin",
]
