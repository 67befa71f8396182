"""Tests for environment-driven settings."""

import os
import unittest
from unittest import mock

from gigachat_client.config import (
    DEFAULT_MODEL,
    DEFAULT_SCOPE,
    DEFAULT_TOKEN_TIMEOUT,
    Settings,
    load_settings,
)
from gigachat_client.errors import ConfigError
from gigachat_client.extract import MissingReply


class TestLoadSettings(unittest.TestCase):

    def setUp(self) -> None:
        # Keep a developer's local .env out of the tests.
        patcher = mock.patch("gigachat_client.config.load_dotenv")
        patcher.start()
        self.addCleanup(patcher.stop)

    def _load(self, env: dict, **overrides) -> Settings:
        with mock.patch.dict(os.environ, env, clear=True):
            return load_settings(**overrides)

    def test_defaults(self) -> None:
        settings = self._load({"GIGACHAT_API_KEY": "key"})
        self.assertEqual(settings.api_key, "key")
        self.assertEqual(settings.scope, DEFAULT_SCOPE)
        self.assertEqual(settings.model, DEFAULT_MODEL)
        self.assertEqual(settings.token_timeout, DEFAULT_TOKEN_TIMEOUT)
        self.assertIsNone(settings.temperature)
        self.assertTrue(settings.verify_ssl)
        self.assertIs(settings.missing_reply, MissingReply.NONE)

    def test_missing_api_key(self) -> None:
        with self.assertRaises(ConfigError):
            self._load({})
        with self.assertRaises(ConfigError):
            self._load({"GIGACHAT_API_KEY": "   "})

    def test_values_parsed(self) -> None:
        settings = self._load({
            "GIGACHAT_API_KEY": "key",
            "GIGACHAT_SCOPE": "GIGACHAT_API_CORP",
            "GIGACHAT_TEMPERATURE": "0.4",
            "GIGACHAT_VERIFY_SSL": "false",
            "GIGACHAT_MISSING_REPLY": "raise",
        })
        self.assertEqual(settings.scope, "GIGACHAT_API_CORP")
        self.assertEqual(settings.temperature, 0.4)
        self.assertFalse(settings.verify_ssl)
        self.assertIs(settings.missing_reply, MissingReply.RAISE)

    def test_invalid_values(self) -> None:
        with self.assertRaises(ConfigError):
            self._load({"GIGACHAT_API_KEY": "key", "GIGACHAT_TIMEOUT": "soon"})
        with self.assertRaises(ConfigError):
            self._load({"GIGACHAT_API_KEY": "key", "GIGACHAT_VERIFY_SSL": "maybe"})
        with self.assertRaises(ConfigError):
            self._load({"GIGACHAT_API_KEY": "key", "GIGACHAT_MISSING_REPLY": "log"})

    def test_overrides_win(self) -> None:
        settings = self._load(
            {"GIGACHAT_API_KEY": "key", "GIGACHAT_MODEL": "GigaChat-Pro"},
            model="GigaChat-Max", temperature=None,
        )
        self.assertEqual(settings.model, "GigaChat-Max")
        self.assertIsNone(settings.temperature)


if __name__ == "__main__":
    unittest.main()
