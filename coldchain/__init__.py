"""Cold-chain alert escalation service."""
