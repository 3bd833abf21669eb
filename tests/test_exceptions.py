"""Tests for domain exception hierarchy."""

from __future__ import annotations

import unittest

from chatmux.exceptions import (
    ChatmuxError,
    CommandError,
    ConfigValidationError,
    ConversationExistsError,
    EnhancerError,
    MissingCredentialError,
    ProviderError,
    RequestCancelledError,
    SearchError,
    StoreError,
)


class ExceptionHierarchyTests(unittest.TestCase):
    """Validate exception inheritance contract."""

    def test_exception_hierarchy(self) -> None:
        for cls in (
            CommandError,
            ConfigValidationError,
            EnhancerError,
            ProviderError,
            RequestCancelledError,
            SearchError,
            StoreError,
        ):
            with self.subTest(cls=cls.__name__):
                self.assertTrue(issubclass(cls, ChatmuxError))
        self.assertTrue(issubclass(ConversationExistsError, StoreError))
        self.assertTrue(issubclass(MissingCredentialError, ProviderError))

    def test_provider_error_carries_response_details(self) -> None:
        exc = ProviderError(
            "groq API error (status 429): slow down",
            provider="groq",
            status_code=429,
            body="slow down",
        )
        self.assertEqual(str(exc), "groq API error (status 429): slow down")
        self.assertEqual((exc.provider, exc.status_code, exc.body), ("groq", 429, "slow down"))
        transport = ProviderError("Unable to connect")
        self.assertIsNone(transport.status_code)
        self.assertIsNone(transport.body)

    def test_search_error_status_code(self) -> None:
        self.assertEqual(SearchError("API error: x", status_code=401).status_code, 401)


if __name__ == "__main__":
    unittest.main()
