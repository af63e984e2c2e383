import logging
import unittest
from pathlib import Path
from tempfile import TemporaryDirectory

from crawldb.config import ConfigError, CrawlDbConfig, InjectorSettings, LogsConfig, StorageConfig
from crawldb.errors import SetupError
from crawldb.injector import Injector
from crawldb.logs import configure_logging
from crawldb.record import OverrideKeys
from crawldb.store import FileStore, MemoryStore

CONFIG_YAML = """
crawl_id: news
workspace: {workspace}
injector:
  default_score: 0.5
  default_fetch_interval: 86400
  score_key: prio
  max_redirects: 5
storage:
  backend: file
  path: crawldb
  compress: true
logs:
  log_file: logs/injector.log
  log_level: debug
"""


class ConfigTests(unittest.TestCase):
    def test_from_yaml(self) -> None:
        with TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "config.yaml"
            path.write_text(CONFIG_YAML.format(workspace=tmpdir), encoding="utf-8")

            config = CrawlDbConfig.from_yaml(str(path))

            self.assertEqual("news", config.crawl_id)
            self.assertEqual(0.5, config.injector.default_score)
            self.assertEqual(86400, config.injector.default_fetch_interval)
            self.assertEqual(OverrideKeys(score="prio", fetch_interval="nutch.fetchInterval"), config.injector.override_keys)
            self.assertEqual("file", config.storage.backend)
            self.assertTrue(config.storage.compress)
            self.assertEqual(Path(tmpdir).resolve() / "crawldb", config.resolve("crawldb"))

    def test_defaults(self) -> None:
        config = CrawlDbConfig.from_dict({})
        self.assertEqual("", config.crawl_id)
        self.assertEqual(1.0, config.injector.default_score)
        self.assertEqual(2592000, config.injector.default_fetch_interval)
        self.assertEqual("memory", config.storage.backend)

    def test_missing_file(self) -> None:
        with self.assertRaises(ConfigError):
            CrawlDbConfig.from_yaml("/nonexistent/config.yaml")

    def test_non_mapping_root(self) -> None:
        with TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "config.yaml"
            path.write_text("- a\n- b\n", encoding="utf-8")
            with self.assertRaises(ConfigError):
                CrawlDbConfig.from_yaml(str(path))

    def test_bad_section(self) -> None:
        with self.assertRaises(ConfigError):
            CrawlDbConfig.from_dict({"storage": "file"})

    def test_unknown_section_key(self) -> None:
        with self.assertRaises(ConfigError) as ctx:
            CrawlDbConfig.from_dict({"storage": {"backend": "memory", "bogus": 1}})
        self.assertIn("bogus", str(ctx.exception))
        with self.assertRaises(ConfigError):
            CrawlDbConfig.from_dict({"injector": {"default_scor": 2.0}})

    def test_invalid_yaml(self) -> None:
        with TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "config.yaml"
            path.write_text("injector: [unclosed\n", encoding="utf-8")
            with self.assertRaises(ConfigError):
                CrawlDbConfig.from_yaml(str(path))

    def test_validation(self) -> None:
        with self.assertRaises(ValueError):
            StorageConfig(backend="hbase")
        with self.assertRaises(ValueError):
            StorageConfig(backend="file")
        with self.assertRaises(ValueError):
            InjectorSettings(max_redirects=0)
        with self.assertRaises(ValueError):
            InjectorSettings(score_key="same", fetch_interval_key="same")
        with self.assertRaises(ValueError):
            CrawlDbConfig(crawl_id="../escape")


class InjectorFromConfigTests(unittest.TestCase):
    def test_file_backed_injector(self) -> None:
        with TemporaryDirectory() as tmpdir:
            config = CrawlDbConfig(
                crawl_id="news",
                workspace=tmpdir,
                injector=InjectorSettings(default_score=0.5, score_key="prio"),
                storage=StorageConfig(backend="file", path="crawldb"),
            )
            with Injector.from_config(config) as injector:
                self.assertIsInstance(injector.store, FileStore)
                self.assertTrue(injector.add_redirect("http://t.co/ZNyOoEwAwN", "http://www.l3s.de/", {"prio": "3"}))

            with Injector.from_config(config) as injector:
                self.assertTrue(injector.has_url("http://t.co/ZNyOoEwAwN"))
                self.assertEqual(3.0, injector.store.get("de.l3s.www:http/").score)
                self.assertFalse(injector.inject("http://www.l3s.de/"))
                self.assertTrue(injector.inject("http://example.com/"))
                self.assertEqual(0.5, injector.store.get("com.example:http/").score)

    def test_memory_backed_injector(self) -> None:
        injector = Injector.from_config(CrawlDbConfig())
        self.assertIsInstance(injector.store, MemoryStore)
        self.assertEqual(20, injector.max_redirects)

    def test_store_setup_failure(self) -> None:
        with TemporaryDirectory() as tmpdir:
            blocker = Path(tmpdir) / "blocker"
            blocker.write_text("x", encoding="utf-8")
            config = CrawlDbConfig(workspace=tmpdir, storage=StorageConfig(backend="file", path="blocker"))
            with self.assertRaises(SetupError):
                Injector.from_config(config)


class LoggingTests(unittest.TestCase):
    def tearDown(self) -> None:
        self._remove_file_handlers()

    def _remove_file_handlers(self) -> None:
        root = logging.getLogger()
        for handler in list(root.handlers):
            if isinstance(handler, logging.FileHandler):
                root.removeHandler(handler)
                handler.close()

    def test_file_handler_attached_once(self) -> None:
        with TemporaryDirectory() as tmpdir:
            logs = LogsConfig(log_file="logs/injector.log", log_level="DEBUG")
            first = configure_logging(logs, workspace=Path(tmpdir))
            second = configure_logging(logs, workspace=Path(tmpdir))

            self.assertEqual(first, second)
            self.assertTrue(first.exists())
            handlers = [
                h for h in logging.getLogger().handlers
                if isinstance(h, logging.FileHandler) and Path(h.baseFilename) == first
            ]
            self.assertEqual(1, len(handlers))
            self.assertEqual(logging.DEBUG, logging.getLogger().level)
            self._remove_file_handlers()

    def test_console_only(self) -> None:
        self.assertIsNone(configure_logging(LogsConfig(log_file=None)))


if __name__ == "__main__":
    unittest.main()
