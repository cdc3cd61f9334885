"""
Reconcile package: the per-event flows and the side effects they perform.
"""

from .handler import handle_event, apply_decision, reconcile

__all__ = ["handle_event", "apply_decision", "reconcile"]
