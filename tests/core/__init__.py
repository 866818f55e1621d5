"""
Client Core Test Package

TEST AXIOMS:
=============
1. Simulated time only: every clock is a ManualClock
2. No network: HTTP goes through httpx.MockTransport
3. Explicit failure: every error surfaces as a typed state
"""
