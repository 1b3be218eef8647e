import json
import os
import shutil
import sys
import tempfile
import unittest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))
from settings import DEFAULT_SETTINGS, Settings, lane_color


class TestSettings(unittest.TestCase):
    def setUp(self):
        self.config_dir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.config_dir)

    def test_defaults(self):
        settings = Settings(self.config_dir)
        self.assertEqual(settings.get_commit_limit(), DEFAULT_SETTINGS["commit_limit"])
        self.assertFalse(settings.get_local_only())
        self.assertEqual(settings.get_recent_repos(), [])
        self.assertIsNone(settings.get_last_repo())

    def test_defaults_are_not_shared(self):
        first = Settings(self.config_dir)
        first.settings["recent_repos"].append("/tmp/x")
        self.assertEqual(DEFAULT_SETTINGS["recent_repos"], [])

    def test_recent_repos_deduplicated_and_capped(self):
        settings = Settings(self.config_dir)
        settings.settings["max_recent"] = 3
        for path in ["/a", "/b", "/c", "/a", "/d"]:
            settings.add_recent_repo(path)

        self.assertEqual(settings.get_recent_repos(), ["/d", "/a", "/c"])
        self.assertEqual(settings.get_last_repo(), "/d")

    def test_persisted_between_instances(self):
        settings = Settings(self.config_dir)
        settings.set_commit_limit(42)
        settings.set_local_only(True)

        reloaded = Settings(self.config_dir)
        self.assertEqual(reloaded.get_commit_limit(), 42)
        self.assertTrue(reloaded.get_local_only())

    def test_invalid_commit_limit(self):
        settings = Settings(self.config_dir)
        with self.assertRaises(ValueError):
            settings.set_commit_limit(0)

    def test_corrupt_file_keeps_defaults(self):
        with open(os.path.join(self.config_dir, "settings.json"), "w", encoding="utf-8") as f:
            f.write("{not json")
        with self.assertLogs("settings", level="ERROR"):
            settings = Settings(self.config_dir)
        self.assertEqual(settings.get_commit_limit(), DEFAULT_SETTINGS["commit_limit"])

    def test_non_dict_file_keeps_defaults(self):
        with open(os.path.join(self.config_dir, "settings.json"), "w", encoding="utf-8") as f:
            json.dump([1, 2, 3], f)
        settings = Settings(self.config_dir)
        self.assertEqual(settings.get_commit_limit(), DEFAULT_SETTINGS["commit_limit"])

    def test_config_dir_from_environment(self):
        nested = os.path.join(self.config_dir, "nested")
        os.environ["GITLANES_CONFIG_DIR"] = nested
        try:
            settings = Settings()
        finally:
            del os.environ["GITLANES_CONFIG_DIR"]
        self.assertEqual(settings.config_file, os.path.join(nested, "settings.json"))
        self.assertTrue(os.path.isdir(nested))


class TestLaneColor(unittest.TestCase):
    def test_hue_steps_by_sixty_degrees(self):
        self.assertEqual(lane_color(0).hslHue(), 0)
        self.assertEqual(lane_color(1).hslHue(), 60)
        self.assertEqual(lane_color(2).hslHue(), 120)

    def test_hue_wraps_around(self):
        self.assertEqual(lane_color(6).name(), lane_color(0).name())
        self.assertEqual(lane_color(7).name(), lane_color(1).name())

    def test_settings_lightness(self):
        config_dir = tempfile.mkdtemp()
        try:
            settings = Settings(config_dir)
            settings.settings["lane_lightness"] = 30
            self.assertLess(settings.lane_color(1).lightness(), lane_color(1).lightness())
        finally:
            shutil.rmtree(config_dir)


if __name__ == "__main__":
    unittest.main()
