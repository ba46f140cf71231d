"""Core contracts.

Protocols implemented by concrete adapters so the services depend on
abstractions (and tests can swap in in-memory fakes).
"""
