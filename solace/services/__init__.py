"""Solace services.

- safety_service: lexicon-driven signal scanning (deterministic, no ML)
- crisis_engine: debounced scanning and the alert escalation flow
- audit_service: append-only trail of every alert transition
"""
