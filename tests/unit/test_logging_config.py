"""
Unit tests for logging_config.py

Verifies that the console setup reaches module loggers created by
get_logger before setup runs.
"""

import logging
import unittest

import dex.feed  # noqa: F401  (creates the dex.feed logger)
import logging_config


class TestLoggingSetup(unittest.TestCase):
    """Test root and application logger configuration."""

    def setUp(self):
        root = logging.getLogger()
        self._root_state = (root.level, list(root.handlers))
        self._states = {
            name: (logger.level, list(logger.handlers))
            for name, logger in list(logging.Logger.manager.loggerDict.items())
            if isinstance(logger, logging.Logger)
        }

    def tearDown(self):
        root = logging.getLogger()
        root.setLevel(self._root_state[0])
        root.handlers[:] = self._root_state[1]
        for name, (level, handlers) in self._states.items():
            logger = logging.getLogger(name)
            logger.setLevel(level)
            logger.handlers[:] = handlers
        for name, logger in list(logging.Logger.manager.loggerDict.items()):
            if isinstance(logger, logging.Logger) and name not in self._states:
                logger.setLevel(logging.NOTSET)

    def test_setup_debug_enables_module_loggers(self):
        logging_config.setup_debug()

        feed_logger = logging.getLogger("dex.feed")
        self.assertTrue(feed_logger.isEnabledFor(logging.DEBUG))
        self.assertEqual(feed_logger.getEffectiveLevel(), logging.DEBUG)

    def test_module_loggers_print_through_root_only(self):
        logging_config.setup()

        self.assertEqual(logging.getLogger("dex.feed").handlers, [])
        self.assertEqual(len(logging.getLogger().handlers), 1)

    def test_setup_minimal_hides_info(self):
        logging_config.setup_minimal()

        self.assertFalse(logging.getLogger("dex.feed").isEnabledFor(logging.INFO))
        self.assertTrue(logging.getLogger("dex.feed").isEnabledFor(logging.WARNING))

    def test_noisy_loggers_quieted(self):
        logging_config.setup()

        self.assertEqual(logging.getLogger("web3").level, logging.WARNING)
        self.assertEqual(logging.getLogger("aiohttp.access").level, logging.WARNING)


if __name__ == "__main__":
    unittest.main()
