import math
import unittest

from piano_tuner.tuning.notes import Note
from piano_tuner.tuning.temperament import REFERENCE_FREQUENCIES, Temperament


class TestTemperament(unittest.TestCase):
    def setUp(self):
        self.temperament = Temperament()

    def test_a4_is_reference(self):
        self.assertEqual(self.temperament.frequency(69), 440.0)

    def test_octaves_double(self):
        self.assertAlmostEqual(self.temperament.frequency(81), 880.0)
        self.assertAlmostEqual(self.temperament.frequency(57), 220.0)
        self.assertAlmostEqual(self.temperament.frequency(21), 27.5)

    def test_octave_ratio_is_two(self):
        for a4 in (430.0, 440.0, 442.5):
            temperament = Temperament(a4)
            self.assertEqual(temperament.frequency(69), a4)
            for midi in range(21, 97):
                ratio = temperament.frequency(midi + 12) / temperament.frequency(midi)
                self.assertAlmostEqual(ratio, 2.0, delta=2e-4)

    def test_reference_table(self):
        self.assertEqual(len(REFERENCE_FREQUENCIES), 88)
        for midi, expected in REFERENCE_FREQUENCIES:
            with self.subTest(midi=midi):
                self.assertAlmostEqual(self.temperament.frequency(midi), expected, delta=0.01)

    def test_frequency_for_note(self):
        middle_c = Note.from_name("C4")
        self.assertAlmostEqual(self.temperament.frequency_for_note(middle_c), 261.626, places=3)

    def test_with_a4_returns_new_model(self):
        raised = self.temperament.with_a4(442.0)
        self.assertEqual(raised.frequency(69), 442.0)
        self.assertAlmostEqual(raised.frequency(81), 884.0)
        self.assertEqual(self.temperament.a4, 440.0)

    def test_cents_sign(self):
        self.assertGreater(Temperament.cents_from_target(445.0, 440.0), 0)
        self.assertLess(Temperament.cents_from_target(435.0, 440.0), 0)
        self.assertEqual(Temperament.cents_from_target(440.0, 440.0), 0.0)

    def test_semitone_is_100_cents(self):
        semitone_up = 440.0 * 2 ** (1 / 12)
        self.assertAlmostEqual(Temperament.cents_from_target(semitone_up, 440.0), 100.0)
        self.assertAlmostEqual(Temperament.cents_from_target(880.0, 440.0), 1200.0)

    def test_cents_of_non_positive_frequency_does_not_raise(self):
        self.assertTrue(math.isinf(Temperament.cents_from_target(0.0, 440.0)))
        self.assertTrue(math.isnan(Temperament.cents_from_target(-1.0, 440.0)))

    def test_frequency_to_cents(self):
        self.assertAlmostEqual(self.temperament.frequency_to_cents(220.0, 57), 0.0)
        self.assertAlmostEqual(self.temperament.frequency_to_cents(440.0, 57), 1200.0)

    def test_cents_to_frequency(self):
        self.assertAlmostEqual(Temperament.cents_to_frequency(440.0, 1200.0), 880.0)
        self.assertAlmostEqual(Temperament.cents_to_frequency(440.0, -1200.0), 220.0)
        for cents in (-49.0, -3.5, 0.0, 7.25, 49.0):
            with self.subTest(cents=cents):
                freq = Temperament.cents_to_frequency(440.0, cents)
                self.assertAlmostEqual(Temperament.cents_from_target(freq, 440.0), cents)

    def test_nearest_note(self):
        midi, cents = self.temperament.nearest_note(445.0)
        self.assertEqual(midi, 69)
        self.assertAlmostEqual(cents, 19.56, places=2)

        midi, cents = self.temperament.nearest_note(255.0)
        self.assertEqual(midi, 60)
        self.assertLess(cents, 0)

    def test_nearest_note_invalid_input(self):
        self.assertIsNone(self.temperament.nearest_note(0.0))
        self.assertIsNone(self.temperament.nearest_note(-10.0))
        self.assertIsNone(self.temperament.nearest_note(float("nan")))
        self.assertIsNone(self.temperament.nearest_note(float("inf")))


if __name__ == "__main__":
    unittest.main()
