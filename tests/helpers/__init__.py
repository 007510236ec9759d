"""Test helper utilities."""

from tests.helpers.fake_provider import FakeProvider

__all__ = [
    "FakeProvider",
]
