"""Test utilities for warble applications::

    from warble.testing import TestClient
"""

from warble.testing.client import ClientResponse, TestClient

__all__ = ["ClientResponse", "TestClient"]
