"""Escalation service exceptions."""


class EscalationError(Exception):
    """Base error for the escalation services."""
