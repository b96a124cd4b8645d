"""
Verify every module in the package can be imported without errors.
"""

import importlib
import pkgutil
import unittest

import piano_tuner

# Needs the PortAudio library at import time
HARDWARE_MODULES = {"piano_tuner.audio.live", "piano_tuner.__main__"}


def find_modules():
    """All module names under the piano_tuner package."""
    return [
        info.name
        for info in pkgutil.walk_packages(piano_tuner.__path__, prefix="piano_tuner.")
        if info.name not in HARDWARE_MODULES
    ]


class TestImports(unittest.TestCase):
    def test_all_modules_import(self):
        modules = find_modules()
        self.assertIn("piano_tuner.engine", modules)
        for name in modules:
            with self.subTest(module=name):
                importlib.import_module(name)

    def test_public_api(self):
        from piano_tuner import TuningEngine, run_loop
        from piano_tuner.audio import PitchDetector
        from piano_tuner.tuning import Temperament

        self.assertTrue(callable(run_loop))
        self.assertTrue(hasattr(TuningEngine, "confirm"))
        self.assertTrue(hasattr(PitchDetector, "detect"))
        self.assertEqual(Temperament().a4, 440.0)


if __name__ == "__main__":
    unittest.main()
