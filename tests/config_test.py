import os
import pickle
import tempfile
import unittest

import config

from const import BIG_ENDIAN, LITTLE_ENDIAN, MAX_RECENT_FILES


class TestConfig(unittest.TestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.config_path = os.path.join(self._tmp.name, "config.pickle")

    def tearDown(self):
        self._tmp.cleanup()

    def test_new_config_created(self):
        cfg = config.load_config(self.config_path)
        self.assertIsNotNone(cfg)
        self.assertEqual(cfg.endian, LITTLE_ENDIAN)
        self.assertEqual(cfg.recent_files, [])
        self.assertTrue(os.path.exists(self.config_path))

    def test_save_and_reload(self):
        bank = os.path.join(self._tmp.name, "a.bnk")
        with open(bank, "wb") as f:
            f.write(b"")
        cfg = config.Config(endian=BIG_ENDIAN, export_folder="dump")
        cfg.add_recent_file(bank)
        cfg.save_config(self.config_path)

        loaded = config.load_config(self.config_path)
        self.assertEqual(loaded.endian, BIG_ENDIAN)
        self.assertEqual(loaded.export_folder, "dump")
        self.assertEqual(len(loaded.recent_files), 1)

    def test_vanished_recent_files_pruned(self):
        cfg = config.Config(recent_files=["/does/not/exist.bnk"])
        cfg.save_config(self.config_path)
        self.assertEqual(config.load_config(self.config_path).recent_files, [])

    def test_recent_files_deduplicated_and_capped(self):
        cfg = config.Config()
        for i in range(MAX_RECENT_FILES + 5):
            cfg.add_recent_file(f"bank_{i}.bnk")
        cfg.add_recent_file("bank_3.bnk")
        self.assertEqual(len(cfg.recent_files), MAX_RECENT_FILES)
        self.assertTrue(cfg.recent_files[0].endswith("bank_3.bnk"))
        self.assertEqual(
            len([f for f in cfg.recent_files if f.endswith("bank_3.bnk")]), 1
        )

    def test_malformed_config(self):
        with open(self.config_path, "wb") as f:
            f.write(b"definitely not a pickle")
        self.assertIsNone(config.load_config(self.config_path))

    def test_wrong_type_config(self):
        with open(self.config_path, "wb") as f:
            pickle.dump({"endian": "<"}, f)
        self.assertIsNone(config.load_config(self.config_path))

    def test_old_config_backfilled(self):
        cfg = config.Config()
        del cfg.export_folder
        cfg.save_config(self.config_path)
        loaded = config.load_config(self.config_path)
        self.assertEqual(loaded.export_folder, "")


if __name__ == "__main__":
    unittest.main()
