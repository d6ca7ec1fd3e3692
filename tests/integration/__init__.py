"""
Integration tests for the tenantsync library.

These tests wire the consistency engine, migration planner and executor,
and change propagator together over the in-memory backends. No external
infrastructure is needed.

Run integration tests:
    pytest tests/integration/ -v

Skip integration tests:
    pytest tests/ -v -m "not integration"
"""
