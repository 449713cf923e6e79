"""Test fixtures and mock clients for treemap bot tests."""

from .mock_finnhub import MockFinnhubClient, MockTelegramNotifier

__all__ = [
    "MockFinnhubClient",
    "MockTelegramNotifier",
]
