"""Tests for settings loading."""
import dataclasses
import logging
import os
import tempfile
import unittest

from order_relay.config import DEFAULT_CATALOG_ACTIONS, Settings, load_settings
from order_relay.logging_config import get_logger, setup_logging


class TestLoadSettings(unittest.TestCase):

    def test_defaults(self):
        settings = load_settings({})
        self.assertEqual(settings.backend_url, "")
        self.assertEqual(settings.shared_secret, "")
        self.assertEqual(settings.timeout_seconds, 15.0)
        self.assertEqual(settings.port, 3000)
        self.assertEqual(settings.catalog_actions, DEFAULT_CATALOG_ACTIONS)

    def test_reads_primary_and_alias_keys(self):
        settings = load_settings({
            "GAS_URL": " https://script.example/exec ",
            "BACKEND_SHARED_SECRET": "abc",
            "UPSTREAM_TIMEOUT_SECONDS": "3.5",
            "PORT": "8080",
            "CATALOG_ACTIONS": "getMenu, getCategories ,",
            "LOG_LEVEL": "debug",
        })
        self.assertEqual(settings.backend_url, "https://script.example/exec")
        self.assertEqual(settings.shared_secret, "abc")
        self.assertEqual(settings.timeout_seconds, 3.5)
        self.assertEqual(settings.port, 8080)
        self.assertEqual(settings.catalog_actions, ("getMenu", "getCategories"))
        self.assertEqual(settings.log_level, "DEBUG")

    def test_bad_numbers_fall_back(self):
        settings = load_settings({"GAS_TIMEOUT_SECONDS": "soon", "PORT": "eighty", "SIG_TTL": "x"})
        self.assertEqual(settings.timeout_seconds, 15.0)
        self.assertEqual(settings.port, 3000)
        self.assertEqual(settings.signature_ttl, 300)
        self.assertEqual(load_settings({"GAS_TIMEOUT_SECONDS": "-1"}).timeout_seconds, 15.0)

    def test_settings_are_frozen(self):
        settings = Settings(backend_url="x")
        with self.assertRaises(dataclasses.FrozenInstanceError):
            settings.backend_url = "y"

    def test_describe_hides_secret(self):
        summary = Settings(backend_url="u", shared_secret="very-secret").describe()
        self.assertTrue(summary["hasSecret"])
        self.assertNotIn("very-secret", repr(summary))


class TestSetupLogging(unittest.TestCase):

    def setUp(self):
        root = logging.getLogger()
        self._saved = (root.level, list(root.handlers))

    def tearDown(self):
        root = logging.getLogger()
        root.handlers[:] = self._saved[1]
        root.setLevel(self._saved[0])

    def test_console_only_and_quiet_http_client(self):
        setup_logging("debug")
        root = logging.getLogger()
        self.assertEqual(root.level, logging.DEBUG)
        self.assertEqual(len(root.handlers), 1)
        self.assertEqual(logging.getLogger("httpx").level, logging.WARNING)
        self.assertIs(get_logger("order_relay.x"), logging.getLogger("order_relay.x"))

    def test_file_handler(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "relay.log")
            setup_logging("INFO", path)
            logging.getLogger("order_relay.test").info("hello")
            for handler in logging.getLogger().handlers:
                handler.flush()
            with open(path, encoding="utf-8") as fh:
                self.assertIn("hello", fh.read())
            for handler in logging.getLogger().handlers:
                handler.close()
