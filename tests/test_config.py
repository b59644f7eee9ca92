"""
Tests for configuration, the config file and the command line mapping.
"""

import json
import logging
import os
import re
import tempfile
import unittest
from unittest.mock import patch

from liveserver.__main__ import build_parser, config_from_args
from liveserver.config import ServerConfig, Verbosity, default_host, load_config_file
from liveserver.exceptions import ConfigError
from liveserver.log import AccessLogger, ErrorAccessLogger, access_logger_for, configure_logging
from liveserver.matchers import ExactPath, Pattern


class TestServerConfig(unittest.TestCase):

    def setUp(self):
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.root = tmp.name

    def test_watch_roots_default_to_root(self):
        config = ServerConfig(root=self.root)
        self.assertEqual(config.watch_roots, [os.path.abspath(self.root)])

    def test_explicit_watch_roots(self):
        config = ServerConfig(root=self.root, watch=["a", "b"])
        self.assertEqual(config.watch_roots, [os.path.abspath("a"), os.path.abspath("b")])

    def test_matchers(self):
        config = ServerConfig(root=self.root, ignore=["dist", re.compile("x")])
        self.assertIsInstance(config.matchers[0], ExactPath)
        self.assertIsInstance(config.matchers[1], Pattern)

    def test_validate(self):
        ServerConfig(root=self.root).validate()
        with self.assertRaises(ConfigError):
            ServerConfig(root=os.path.join(self.root, "missing")).validate()
        with self.assertRaises(ConfigError):
            ServerConfig(root=self.root, port=70000).validate()

    def test_default_host(self):
        with patch.dict(os.environ, {"IP": "10.1.2.3"}):
            self.assertEqual(default_host(), "10.1.2.3")
        with patch.dict(os.environ, {}, clear=True):
            self.assertEqual(default_host(), "0.0.0.0")


class TestConfigFile(unittest.TestCase):

    def setUp(self):
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.path = os.path.join(tmp.name, ".live-server.json")

    def write(self, content):
        with open(self.path, "w") as f:
            f.write(content)

    def test_missing_file(self):
        self.assertEqual(load_config_file(self.path), {})

    def test_valid_file(self):
        self.write(json.dumps({"port": 9000, "poll": True}))
        self.assertEqual(load_config_file(self.path), {"port": 9000, "poll": True})

    def test_invalid_json(self):
        self.write("{port: 9000")
        with self.assertRaises(ConfigError):
            load_config_file(self.path)

    def test_not_an_object(self):
        self.write("[1, 2]")
        with self.assertRaises(ConfigError):
            load_config_file(self.path)


class TestCommandLine(unittest.TestCase):

    def setUp(self):
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.root = os.path.abspath(tmp.name)

    def parse(self, *argv, defaults=None):
        return config_from_args(build_parser().parse_args(list(argv)), defaults)

    def test_options(self):
        config = self.parse(
            self.root, "--host", "127.0.0.1", "--port", "0",
            "--watch", "src,assets", "--ignore", "dist", "--ignore-pattern", r"\.map$",
            "--wait", "250", "--poll", "-V",
        )
        self.assertEqual(config.root, self.root)
        self.assertEqual(config.host, "127.0.0.1")
        self.assertEqual(config.port, 0)
        self.assertEqual(config.watch_roots, [os.path.join(self.root, "src"), os.path.join(self.root, "assets")])
        self.assertEqual(config.matchers[0], ExactPath(os.path.join(self.root, "dist")))
        self.assertTrue(config.matchers[1].matches("app.js.map"))
        self.assertEqual(config.debounce, 0.25)
        self.assertTrue(config.poll)
        self.assertIs(config.verbosity, Verbosity.VERBOSE)

    def test_defaults(self):
        config = self.parse(self.root)
        self.assertEqual(config.port, 8080)
        self.assertEqual(config.watch_roots, [self.root])
        self.assertFalse(config.poll)
        self.assertEqual(config.debounce, 0)
        self.assertIs(config.verbosity, Verbosity.INFO)

    def test_quiet(self):
        self.assertIs(self.parse(self.root, "-q").verbosity, Verbosity.QUIET)

    def test_arguments_override_config_file(self):
        defaults = {"port": 9000, "host": "127.0.0.1", "poll": True, "logLevel": 0}
        config = self.parse(self.root, "--port", "0", defaults=defaults)
        self.assertEqual(config.port, 0)
        self.assertEqual(config.host, "127.0.0.1")
        self.assertTrue(config.poll)
        self.assertIs(config.verbosity, Verbosity.QUIET)


class TestLogging(unittest.TestCase):

    def tearDown(self):
        logging.getLogger("liveserver").setLevel(logging.NOTSET)

    def test_levels(self):
        configure_logging(Verbosity.QUIET)
        self.assertEqual(logging.getLogger("liveserver").level, logging.ERROR)
        configure_logging(Verbosity.VERBOSE)
        self.assertEqual(logging.getLogger("liveserver").level, logging.DEBUG)

    def test_request_logger_choice(self):
        self.assertIsNone(access_logger_for(Verbosity.QUIET))
        self.assertIs(access_logger_for(Verbosity.ERRORS), ErrorAccessLogger)
        self.assertIs(access_logger_for(Verbosity.INFO), ErrorAccessLogger)
        self.assertIs(access_logger_for(Verbosity.VERBOSE), AccessLogger)


if __name__ == "__main__":
    unittest.main()
