"""
Live deployment checks.

These tests talk to a real control plane and a real voice server, so they
only run when BOTCHECK_LIVE=1 is set:

    BOTCHECK_LIVE=1 pytest system_tests/ -v
"""
