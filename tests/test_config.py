from __future__ import annotations

import json
import tempfile
import unittest
from pathlib import Path

from datamend.config import DEFAULT_SETTINGS, STARTER_CONFIG, load_settings, starter_config_text
from datamend.errors import ConfigError


class LoadSettingsTests(unittest.TestCase):
    def write_config(self, tmpdir: str, payload) -> Path:
        path = Path(tmpdir) / "datamend.json"
        path.write_text(payload if isinstance(payload, str) else json.dumps(payload), encoding="utf-8")
        return path

    def test_defaults_without_file_or_environment(self):
        self.assertEqual(load_settings(environ={}), DEFAULT_SETTINGS)

    def test_file_overrides_defaults(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = self.write_config(
                tmpdir,
                {"detection": {"iqr_multiplier": 3}, "dates": {"dayfirst": False}, "linkage": {"batch_size": 10}},
            )
            settings = load_settings(path, environ={})
        self.assertEqual(settings.iqr_multiplier, 3.0)
        self.assertIsInstance(settings.iqr_multiplier, float)
        self.assertFalse(settings.dayfirst)
        self.assertEqual(settings.batch_size, 10)
        self.assertEqual(settings.max_workers, DEFAULT_SETTINGS.max_workers)

    def test_environment_overrides_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = self.write_config(tmpdir, {"linkage": {"batch_size": 10}})
            settings = load_settings(
                path,
                environ={"DATAMEND_BATCH_SIZE": "7", "DATAMEND_DAYFIRST": "no", "DATAMEND_EXECUTOR": "Process"},
            )
        self.assertEqual(settings.batch_size, 7)
        self.assertFalse(settings.dayfirst)
        self.assertEqual(settings.executor, "process")

    def test_unknown_keys_are_ignored_with_a_warning(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = self.write_config(tmpdir, {"detection": {"colour": "blue"}, "ui": {}})
            with self.assertLogs("datamend.config", level="WARNING") as logs:
                settings = load_settings(path, environ={})
        self.assertEqual(settings, DEFAULT_SETTINGS)
        self.assertEqual(len(logs.records), 2)

    def test_invalid_input_raises_config_error(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            broken = self.write_config(tmpdir, "{not json")
            with self.assertRaises(ConfigError):
                load_settings(broken, environ={})
            with self.assertRaises(ConfigError):
                load_settings(Path(tmpdir) / "missing.json", environ={})
        with self.assertRaises(ConfigError):
            load_settings(environ={"DATAMEND_BATCH_SIZE": "0"})
        with self.assertRaises(ConfigError):
            load_settings(environ={"DATAMEND_MAX_WORKERS": "many"})
        with self.assertRaises(ConfigError):
            load_settings(environ={"DATAMEND_EXECUTOR": "gpu"})
        with self.assertRaises(ConfigError):
            load_settings(environ={"DATAMEND_CATEGORICAL_MIN": "60"})

    def test_starter_config_round_trips(self):
        self.assertEqual(json.loads(starter_config_text()), STARTER_CONFIG)
        with tempfile.TemporaryDirectory() as tmpdir:
            path = self.write_config(tmpdir, starter_config_text())
            self.assertEqual(load_settings(path, environ={}), DEFAULT_SETTINGS)


if __name__ == "__main__":
    unittest.main()
