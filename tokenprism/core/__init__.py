"""Core domain: models, reconciliation, refresh and fan-out services."""
