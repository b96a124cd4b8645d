import tempfile
import unittest
from pathlib import Path

import numpy as np

from piano_tuner.audio.providers import BufferAudioSource
from piano_tuner.core.config import ConfigManager
from piano_tuner.core.events import TuningEventType
from piano_tuner.engine import TuningEngine, run_loop
from piano_tuner.tuning.order import TuningOrder
from piano_tuner.tuning.session import (
    CompletedNote,
    Session,
    SessionState,
    TuningMode,
)
from piano_tuner.tuning.store import SessionStore
from piano_tuner.tuning.stretch import StretchCurve
from piano_tuner.tuning.temperament import Temperament
from piano_tuner.tuning.unison import UnisonStep


def off_by(engine, cents):
    """A frequency ``cents`` away from the engine's current target."""
    return Temperament.cents_to_frequency(engine.target_frequency, cents)


class EngineTestCase(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.dir = Path(self._tmp.name)
        self.store = SessionStore(self.dir / "session.json")

    def tearDown(self):
        self._tmp.cleanup()

    def record(self, engine, event_type):
        calls = []
        engine.events.on(event_type, lambda *args: calls.append(args))
        return calls


class TestModeSelection(EngineTestCase):
    def test_starts_awaiting_mode(self):
        engine = TuningEngine()
        self.assertEqual(engine.state, SessionState.AWAITING_MODE)
        self.assertIsNone(engine.current_note)
        self.assertIsNone(engine.target_frequency)
        self.assertFalse(engine.confirm())
        self.assertFalse(engine.skip())

    def test_concert_mode_tunes_at_440(self):
        engine = TuningEngine()
        engine.choose_mode(TuningMode.CONCERT)
        self.assertEqual(engine.state, SessionState.TUNING)
        self.assertEqual(engine.temperament.a4, 440.0)
        self.assertEqual(engine.current_note.display_name, "A0")
        self.assertAlmostEqual(
            engine.target_frequency, StretchCurve().target_frequency(Temperament(), 21)
        )

    def test_choose_mode_twice_is_rejected(self):
        engine = TuningEngine()
        engine.choose_mode(TuningMode.CONCERT)
        with self.assertRaises(ValueError):
            engine.choose_mode(TuningMode.QUICK)

    def test_state_changes_are_published(self):
        engine = TuningEngine()
        changes = self.record(engine, TuningEventType.STATE_CHANGED)
        engine.choose_mode(TuningMode.QUICK)
        engine.skip_calibration()
        self.assertEqual(
            changes,
            [
                (SessionState.AWAITING_MODE, SessionState.CALIBRATING),
                (SessionState.CALIBRATING, SessionState.TUNING),
            ],
        )


class TestCalibration(EngineTestCase):
    def setUp(self):
        super().setUp()
        self.engine = TuningEngine()
        self.engine.choose_mode(TuningMode.QUICK)

    def test_ten_confident_readings_set_a4(self):
        samples = self.record(self.engine, TuningEventType.CALIBRATION_SAMPLE)
        for _ in range(10):
            self.engine.update_pitch(442.0, 0.9)
        self.assertEqual(len(samples), 10)
        self.assertEqual(self.engine.state, SessionState.TUNING)
        self.assertAlmostEqual(self.engine.temperament.a4, 442.0)
        self.assertAlmostEqual(self.engine.session.a4_reference, 442.0)
        self.assertEqual(self.engine.session.mode, TuningMode.QUICK)

    def test_low_confidence_readings_are_ignored(self):
        for _ in range(20):
            self.engine.update_pitch(442.0, 0.79)
        self.assertEqual(self.engine.state, SessionState.CALIBRATING)
        self.assertEqual(self.engine.calibrator.sample_count, 0)

    def test_out_of_band_readings_are_ignored(self):
        for _ in range(20):
            self.engine.update_pitch(220.0, 0.95)
        self.assertEqual(self.engine.state, SessionState.CALIBRATING)
        self.assertEqual(self.engine.calibrator.sample_count, 0)

    def test_silence_clears_live_reading(self):
        self.engine.update_pitch(441.0, 0.9)
        self.engine.clear_pitch()
        self.assertIsNone(self.engine.calibrator.current_frequency)
        self.assertEqual(self.engine.calibrator.sample_count, 1)

    def test_skip_calibration_uses_440(self):
        self.engine.update_pitch(450.0, 0.9)
        self.engine.skip_calibration()
        self.assertEqual(self.engine.state, SessionState.TUNING)
        self.assertEqual(self.engine.temperament.a4, 440.0)

    def test_skip_calibration_outside_calibration(self):
        engine = TuningEngine()
        with self.assertRaises(ValueError):
            engine.skip_calibration()


class TestTuning(EngineTestCase):
    def concert(self, **kwargs):
        engine = TuningEngine(**kwargs)
        engine.choose_mode(TuningMode.CONCERT)
        return engine

    def test_confidence_gate(self):
        engine = self.concert()
        engine.update_pitch(engine.target_frequency, 0.59)
        self.assertIsNone(engine.reading)
        engine.update_pitch(engine.target_frequency, 0.6)
        self.assertAlmostEqual(engine.reading.cents, 0.0)
        self.assertEqual(engine.reading.confidence, 0.6)

    def test_cents_are_measured_from_stretched_target(self):
        engine = self.concert()
        engine.update_pitch(27.5, 0.9)  # unstretched A0
        self.assertAlmostEqual(engine.reading.cents, 15.71, places=2)

    def test_hint(self):
        engine = self.concert()
        self.assertIsNone(engine.hint)
        engine.update_pitch(off_by(engine, 20.0), 0.9)
        self.assertIn("COUNTER-CLOCKWISE", engine.hint)
        engine.update_pitch(off_by(engine, 2.0), 0.9)
        self.assertIsNone(engine.hint)

    def test_single_string_note_confirms_when_in_tune(self):
        engine = self.concert()
        self.assertFalse(engine.confirm())  # nothing detected

        engine.update_pitch(off_by(engine, 8.0), 0.9)
        self.assertFalse(engine.confirm())

        engine.update_pitch(off_by(engine, -4.0), 0.9)
        self.assertTrue(engine.confirm())
        self.assertEqual(len(engine.session.completed_notes), 1)
        record = engine.session.completed_notes[0]
        self.assertEqual(record.note_name, "A0")
        self.assertAlmostEqual(record.final_cents, -4.0)
        self.assertEqual(engine.current_note.display_name, "A#0")
        self.assertIsNone(engine.reading)

    def test_trichord_needs_four_confirmations(self):
        engine = self.concert(order=TuningOrder("temperament"))
        steps = self.record(engine, TuningEventType.STEP_ADVANCED)
        self.assertEqual(engine.current_note.display_name, "A4")
        self.assertEqual(engine.unison.step, UnisonStep.MUTE_OUTER)

        engine.update_pitch(off_by(engine, 1.0), 0.9)
        for _ in range(3):
            self.assertTrue(engine.confirm())
            self.assertEqual(engine.session.completed_notes, [])
        self.assertEqual(engine.unison.step, UnisonStep.TUNE_RIGHT)
        self.assertEqual([step for _, step in steps], list(UnisonStep)[1:])

        self.assertTrue(engine.confirm())
        self.assertEqual(len(engine.session.completed_notes), 1)
        self.assertEqual(engine.current_note.display_name, "E4")
        self.assertEqual(engine.unison.step, UnisonStep.MUTE_OUTER)

    def test_final_step_rejects_out_of_tolerance(self):
        engine = self.concert(order=TuningOrder("temperament"))
        engine.update_pitch(off_by(engine, 7.0), 0.9)
        for _ in range(3):
            engine.confirm()
        self.assertFalse(engine.confirm())
        self.assertEqual(engine.session.completed_notes, [])
        self.assertEqual(engine.unison.step, UnisonStep.TUNE_RIGHT)

        engine.update_pitch(off_by(engine, -4.5), 0.9)
        self.assertTrue(engine.confirm())
        self.assertEqual(len(engine.session.completed_notes), 1)

    def test_final_step_needs_live_detection(self):
        engine = self.concert(order=TuningOrder("temperament"))
        engine.update_pitch(engine.target_frequency, 0.9)
        for _ in range(3):
            engine.confirm()
        engine.clear_pitch()
        self.assertFalse(engine.confirm())
        self.assertEqual(engine.session.completed_notes, [])

    def test_custom_tolerance(self):
        engine = self.concert(tolerance_cents=2.0)
        engine.update_pitch(off_by(engine, 3.0), 0.9)
        self.assertFalse(engine.confirm())
        self.assertFalse(engine.is_current_note_complete())

    def test_skip_records_zero_cents(self):
        engine = self.concert()
        completed = self.record(engine, TuningEventType.NOTE_COMPLETED)
        engine.update_pitch(off_by(engine, 30.0), 0.9)
        self.assertTrue(engine.skip())
        self.assertEqual(completed, [(CompletedNote("A0", 0.0),)])
        self.assertEqual(engine.position, 1)

    def test_skip_discards_unison_progress(self):
        engine = self.concert(order=TuningOrder("temperament"))
        engine.confirm()
        engine.confirm()
        engine.skip()
        self.assertEqual(engine.session.completed_notes, [CompletedNote("A4", 0.0)])
        self.assertEqual(engine.unison.step, UnisonStep.MUTE_OUTER)

    def test_note_changes_are_published(self):
        engine = TuningEngine()
        changes = self.record(engine, TuningEventType.NOTE_CHANGED)
        engine.choose_mode(TuningMode.CONCERT)
        engine.skip()
        self.assertEqual([(n.display_name, pos) for n, pos in changes], [("A0", 0), ("A#0", 1)])

    def test_session_completes_after_all_keys(self):
        engine = self.concert()
        finished = self.record(engine, TuningEventType.SESSION_COMPLETE)
        for _ in range(88):
            self.assertTrue(engine.skip())

        self.assertEqual(engine.state, SessionState.COMPLETE)
        self.assertIsNone(engine.current_note)
        self.assertFalse(engine.skip())
        self.assertFalse(engine.confirm())
        self.assertEqual(len(finished), 1)
        summary = engine.summary
        self.assertEqual(summary.note_count, 88)
        self.assertEqual(summary.completed_notes[-1].note_name, "C8")
        self.assertEqual(summary.avg_deviation, 0.0)

    def test_process_window(self):
        engine = self.concert(order=TuningOrder("temperament"))
        samples = BufferAudioSource.sine(engine.target_frequency, 0.1, 44100).samples
        result = engine.process_window(samples[:4096])
        self.assertIsNotNone(result)
        self.assertLess(abs(engine.reading.cents), 2.0)

        engine.process_window(np.zeros(4096))
        self.assertIsNone(engine.reading)


class TestPersistence(EngineTestCase):
    def test_session_saved_when_tuning_starts(self):
        engine = TuningEngine(store=self.store)
        engine.choose_mode(TuningMode.CONCERT)
        self.assertTrue(self.store.exists())
        self.assertEqual(self.store.load().current_note_index, 0)

    def test_progress_saved_after_each_note(self):
        engine = TuningEngine(store=self.store)
        engine.choose_mode(TuningMode.QUICK)
        for _ in range(10):
            engine.update_pitch(438.0, 0.9)
        for expected in (1, 2, 3):
            engine.skip()
            saved = self.store.load()
            self.assertEqual(saved.current_note_index, expected)
            self.assertAlmostEqual(saved.a4_reference, 438.0)
            self.assertEqual(saved.mode, TuningMode.QUICK)

    def test_resume(self):
        session = Session(
            mode=TuningMode.QUICK,
            a4_reference=441.0,
            current_note_index=40,
            completed_notes=[CompletedNote("A0", 1.0)],
        )
        engine = TuningEngine(store=self.store)
        engine.resume(session)
        self.assertEqual(engine.state, SessionState.TUNING)
        self.assertEqual(engine.mode, TuningMode.QUICK)
        self.assertEqual(engine.temperament.a4, 441.0)
        self.assertEqual(engine.current_note.display_name, "C#4")
        self.assertEqual(engine.position, 40)

    def test_resume_from_store_after_restart(self):
        first = TuningEngine(store=self.store)
        first.choose_mode(TuningMode.CONCERT)
        for _ in range(5):
            first.skip()

        second = TuningEngine(store=self.store)
        second.resume(self.store.load())
        self.assertEqual(second.position, 5)
        self.assertEqual(second.current_note.display_name, "D1")
        self.assertEqual(len(second.session.completed_notes), 5)

    def test_resume_finished_session(self):
        engine = TuningEngine()
        engine.resume(Session(current_note_index=88))
        self.assertEqual(engine.state, SessionState.COMPLETE)
        self.assertIsNotNone(engine.summary)

    def test_reset(self):
        engine = TuningEngine(store=self.store)
        engine.choose_mode(TuningMode.QUICK)
        engine.update_pitch(440.0, 0.9)
        engine.reset()
        self.assertEqual(engine.state, SessionState.AWAITING_MODE)
        self.assertIsNone(engine.session)
        self.assertIsNone(engine.mode)
        self.assertEqual(engine.calibrator.sample_count, 0)

        engine.choose_mode(TuningMode.CONCERT)
        self.assertEqual(engine.state, SessionState.TUNING)


class TestFromConfig(EngineTestCase):
    def test_defaults(self):
        engine = TuningEngine.from_config(ConfigManager(str(self.dir)))
        self.assertEqual(engine.order.strategy, "chromatic")
        self.assertEqual(engine.detector.sample_rate, 44100)
        self.assertEqual(engine.tolerance_cents, 5.0)
        self.assertEqual(engine.calibration_gate, 0.8)
        self.assertEqual(engine.tuning_gate, 0.6)
        self.assertNotEqual(engine.stretch.offset_cents(21), 0.0)

    def test_overrides(self):
        manager = ConfigManager(str(self.dir))
        manager.update_config(
            "tuning",
            {
                "order": "temperament",
                "stretch": False,
                "tolerance_cents": 2.0,
                "calibration_samples": 4,
                "calibration_band": [430.0, 450.0],
            },
        )
        engine = TuningEngine.from_config(manager, self.store, sample_rate=48000)
        self.assertEqual(engine.order.strategy, "temperament")
        self.assertTrue(np.all(engine.stretch.offsets == 0.0))
        self.assertEqual(engine.tolerance_cents, 2.0)
        self.assertEqual(engine.calibrator.target_samples, 4)
        self.assertEqual(engine.calibrator.band, (430.0, 450.0))
        self.assertEqual(engine.detector.sample_rate, 48000)
        self.assertIs(engine.store, self.store)


class TestRunLoop(EngineTestCase):
    def test_calibrates_from_audio(self):
        engine = TuningEngine()
        engine.choose_mode(TuningMode.QUICK)
        source = BufferAudioSource.sine(441.0, 1.5, 44100)

        windows = run_loop(engine, source, window_size=4096)

        # 16 full windows plus a short final one
        self.assertEqual(windows, 17)
        self.assertEqual(engine.state, SessionState.TUNING)
        self.assertAlmostEqual(engine.temperament.a4, 441.0, delta=0.5)

    def test_should_stop(self):
        engine = TuningEngine()
        engine.choose_mode(TuningMode.CONCERT)
        ticks = []
        source = BufferAudioSource.sine(440.0, 2.0, 44100)

        windows = run_loop(
            engine,
            source,
            window_size=4096,
            should_stop=lambda: len(ticks) >= 3,
            on_tick=lambda eng, result: ticks.append(result),
        )
        self.assertEqual(windows, 3)
        self.assertTrue(all(r is not None for r in ticks))

    def test_empty_source(self):
        engine = TuningEngine()
        self.assertEqual(run_loop(engine, BufferAudioSource([], 44100)), 0)

    def test_follows_source_sample_rate(self):
        engine = TuningEngine()
        engine.choose_mode(TuningMode.CONCERT)
        run_loop(engine, BufferAudioSource.sine(440.0, 0.5, 22050), window_size=2048)
        self.assertEqual(engine.detector.sample_rate, 22050)


if __name__ == "__main__":
    unittest.main()
