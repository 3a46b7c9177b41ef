"""Test Fixtures Package.

Provides in-memory fakes for servicehub tests:
- http.py: httpx MockTransport client and sample interface descriptions
- fakes.py: WebSocket connection/connector, discovery source and host
  service hook fakes

Fixtures are imported directly by conftest.py and test modules; no
re-exports here.
"""
