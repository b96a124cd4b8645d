"""Main entry point for the piano tuner CLI."""

import argparse
import queue
import sys
import threading
from typing import List, Optional

import numpy as np
import soundfile as sf

from ..audio.interfaces import IAudioSource
from ..audio.pitch import PitchDetector, PitchResult
from ..audio.providers import BufferAudioSink, WavFileAudioSource
from ..audio.reference import ReferenceTone
from ..core.config import ConfigManager
from ..core.events import TuningEventType
from ..engine import TuningEngine, run_loop
from ..logger import get_logger
from ..logging_config import setup_logging
from ..tuning.notes import NOTES, Note
from ..tuning.session import SessionState, TuningMode
from ..tuning.store import SessionStore
from ..tuning.stretch import StretchCurve
from ..tuning.temperament import Temperament

logger = get_logger(__name__)


def show_notes(a4: float, stretch: bool) -> None:
    """Print all 88 keys with their tuning targets."""
    temperament = Temperament(a4)
    curve = StretchCurve() if stretch else StretchCurve.flat()

    print(f"{'Key':>4}  {'Note':<5} {'MIDI':>4}  {'Str':>3}  {'Tempered':>10}  {'Stretch':>8}  {'Target':>10}")
    for note in NOTES:
        print(
            f"{note.index + 1:>4}  {note.display_name:<5} {note.midi:>4}  {note.strings:>3}  "
            f"{temperament.frequency(note.midi):>10.3f}  "
            f"{curve.offset_cents(note.midi):>+8.2f}  "
            f"{curve.target_frequency(temperament, note.midi):>10.3f}"
        )


def detect_file(path: str, config_manager: ConfigManager, window_size: int) -> int:
    """Print the pitch of each window of a WAV file."""
    try:
        source = WavFileAudioSource(path)
    except RuntimeError as e:
        # soundfile raises LibsndfileError (a RuntimeError) for unreadable files
        print(f"Could not open {path}: {e}", file=sys.stderr)
        return 1

    with source:
        detector = PitchDetector.from_config(
            source.sample_rate, config_manager.get_config("pitch_detector")
        )
        temperament = Temperament()
        if window_size < detector.min_window_size():
            logger.warning(
                f"Window of {window_size} samples is too short to reach "
                f"{detector.min_frequency} Hz; need {detector.min_window_size()}"
            )

        buffer = np.zeros(window_size, dtype=np.float64)
        position = 0
        while True:
            count = source.read_samples(buffer)
            if count == 0:
                break
            timestamp = position / source.sample_rate
            position += count

            result = detector.detect(buffer[:count])
            if result is None:
                print(f"[{timestamp:7.2f}s] --")
                continue
            nearest = temperament.nearest_note(result.frequency)
            label = ""
            if nearest is not None:
                midi, cents = nearest
                note = Note.from_midi(midi)
                name = note.display_name if note else f"MIDI {midi}"
                label = f"{name} {cents:+6.1f} cents"
            print(
                f"[{timestamp:7.2f}s] {result.frequency:9.2f} Hz  "
                f"conf {result.confidence:.2f}  {label}"
            )
    return 0


def _read_commands(commands: "queue.Queue[str]") -> None:
    """Feed stdin lines to the control loop."""
    for line in sys.stdin:
        commands.put(line.strip().lower())
    commands.put("q")


def _describe(engine: TuningEngine, result: Optional[PitchResult]) -> str:
    if engine.state is SessionState.CALIBRATING:
        cal = engine.calibrator
        freq = f"{result.frequency:.2f} Hz" if result else "--"
        return f"Calibrating A4: {cal.sample_count}/{cal.target_samples}  {freq}"

    if engine.state is SessionState.TUNING:
        note = engine.current_note
        unison = engine.unison
        step = f"step {unison.step_number}/{unison.total_steps}" if unison else ""
        reading = engine.reading
        if reading is None:
            return f"{note} ({engine.target_frequency:.2f} Hz) {step}  --"
        hint = engine.hint or "In tune"
        return (
            f"{note} ({engine.target_frequency:.2f} Hz) {step}  "
            f"{reading.frequency:.2f} Hz {reading.cents:+.1f} cents  {hint}"
        )

    return engine.state.name


def handle_command(engine: TuningEngine, command: str) -> bool:
    """Apply one typed command. Returns False when the user asked to quit."""
    if command == "q":
        return False
    if command == "c":
        if not engine.confirm():
            print("Not confirmed: note is not in tune yet")
    elif command == "s":
        engine.skip()
    elif command == "k":
        if engine.state is SessionState.CALIBRATING:
            engine.skip_calibration()
        else:
            print("Not calibrating")
    elif command:
        print(f"Unknown command '{command}'")
    return True


def run_tuning(
    engine: TuningEngine,
    source: IAudioSource,
    window_size: int,
    interactive: bool = True,
) -> int:
    """Run a session until it completes, the source ends or the user quits.

    Commands are read one per line: ``c`` confirms, ``s`` skips, ``k`` skips
    calibration and ``q`` quits.
    """
    commands: "queue.Queue[str]" = queue.Queue()
    if interactive:
        reader = threading.Thread(target=_read_commands, args=(commands,), daemon=True)
        reader.start()
        print("Commands: c = confirm, s = skip note, k = skip calibration, q = quit")

    stop = threading.Event()

    def on_tick(engine: TuningEngine, result: Optional[PitchResult]) -> None:
        print(_describe(engine, result))
        while True:
            try:
                command = commands.get_nowait()
            except queue.Empty:
                break
            if not handle_command(engine, command):
                stop.set()
        if engine.state is SessionState.COMPLETE:
            stop.set()

    def on_step(note, step) -> None:
        print(f"{note}: {step.title}. {step.instruction}")

    engine.events.on(TuningEventType.STEP_ADVANCED, on_step)

    try:
        run_loop(engine, source, window_size, should_stop=stop.is_set, on_tick=on_tick)
    except KeyboardInterrupt:
        print("\nStopped by user")
    finally:
        engine.events.off(TuningEventType.STEP_ADVANCED, on_step)
        source.close()

    summary = engine.summary
    if summary is not None:
        print("\n=== SESSION COMPLETE ===")
        print(f"Notes tuned: {summary.note_count}")
        print(f"Average deviation: {summary.avg_deviation:.1f} cents")
        print(
            f"In tune: {summary.notes_in_tune}  Warning: {summary.notes_warning}  "
            f"Out of tune: {summary.notes_out_of_tune}"
        )
        print(summary.quality)
    elif engine.session is not None:
        print(f"Progress saved at note {engine.position + 1}/{len(engine.order)}")
    return 0


def _open_source(args, config_manager: ConfigManager) -> Optional[IAudioSource]:
    if args.wav:
        try:
            return WavFileAudioSource(args.wav)
        except RuntimeError as e:
            print(f"Could not open {args.wav}: {e}", file=sys.stderr)
            return None

    from ..audio.live import LiveAudioSource, check_input_rate

    audio = config_manager.get_config("audio_input")
    rate = int(audio.get("sample_rate", 44100))
    if not check_input_rate(args.device, rate):
        print(f"Device {args.device} does not support {rate} Hz input", file=sys.stderr)
        return None
    return LiveAudioSource(
        device_id=args.device,
        sample_rate=rate,
        channels=int(audio.get("channels", 1)),
        block_size=args.window_size,
    )


def tune(args, config_manager: ConfigManager, store: SessionStore) -> int:
    source = _open_source(args, config_manager)
    if source is None:
        return 1

    engine = TuningEngine.from_config(config_manager, store, sample_rate=source.sample_rate)
    session = store.restore() if args.resume else None
    if session is not None:
        engine.resume(session)
    elif args.resume and store.exists():
        print("Saved session could not be read; starting a new quick session")
        engine.choose_mode(TuningMode.QUICK)
    else:
        engine.choose_mode(TuningMode(args.mode))
    return run_tuning(engine, source, args.window_size, interactive=not args.no_input)


def show_status(store: SessionStore) -> int:
    if not store.exists():
        print("No saved session")
        return 0
    session = store.restore()
    if session is None:
        print(f"Saved session {store.path} could not be read")
        return 1
    print(f"Mode: {session.mode.value}")
    print(f"A4 reference: {session.a4_reference:.2f} Hz")
    print(f"Progress: {session.current_note_index}/{len(NOTES)} notes")
    if session.completed_notes:
        last = session.completed_notes[-1]
        print(f"Last note: {last.note_name} ({last.final_cents:+.1f} cents)")
    return 0


def play_tone(args, config_manager: ConfigManager) -> int:
    """Play the tuning target of one key, or write it to a WAV file."""
    note = Note.from_name(args.note)
    if note is None:
        print(f"Unknown note: {args.note}", file=sys.stderr)
        return 1

    curve = StretchCurve.flat() if args.no_stretch else StretchCurve()
    frequency = curve.target_frequency(Temperament(args.a4), note.midi)
    rate = int(config_manager.get_config("audio_input").get("sample_rate", 44100))
    tone = ReferenceTone(frequency, rate)
    print(f"{note.display_name}: {frequency:.3f} Hz")

    if args.out:
        sink = BufferAudioSink(rate)
        tone.play(sink, args.duration)
        sf.write(args.out, sink.samples, rate)
        return 0

    from ..audio.live import LiveAudioSink

    sink = LiveAudioSink(device_id=args.device, sample_rate=rate)
    try:
        tone.play(sink, args.duration)
    finally:
        sink.close()
    return 0


def show_devices() -> int:
    from ..audio.live import list_input_devices

    devices = list_input_devices()
    if not devices:
        print("No input devices found")
        return 1
    for device in devices:
        print(
            f"{device['id']:>3}  {device['name']} "
            f"({device['channels']} ch, {device['default_samplerate']:.0f} Hz)"
        )
    return 0


def main(args: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI.

    Args:
        args: Command line arguments, or None to use sys.argv

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    parser = argparse.ArgumentParser(description="Piano Tuner - 88-key tuning assistant")
    parser.add_argument(
        "--config-dir", default=None, help="Configuration directory (default: ~/.config/piano_tuner)"
    )
    parser.add_argument(
        "--session-file", default=None, help="Session snapshot path (default: <config dir>/session.json)"
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    debug_parent = argparse.ArgumentParser(add_help=False)
    debug_parent.add_argument("--debug", action="store_true", help="Enable debug logging")

    notes_parser = subparsers.add_parser(
        "notes", parents=[debug_parent], help="Print the note table with tuning targets"
    )
    notes_parser.add_argument("--a4", type=float, default=440.0, help="A4 reference in Hz")
    notes_parser.add_argument(
        "--no-stretch", action="store_true", help="Plain equal temperament targets"
    )

    detect_parser = subparsers.add_parser(
        "detect", parents=[debug_parent], help="Detect pitch in a WAV file"
    )
    detect_parser.add_argument("wav", help="Path to a WAV file")
    detect_parser.add_argument("--window-size", type=int, default=None, help="Samples per window")

    tune_parser = subparsers.add_parser(
        "tune", parents=[debug_parent], help="Run a tuning session"
    )
    source_group = tune_parser.add_mutually_exclusive_group()
    source_group.add_argument("--wav", default=None, help="Read audio from a WAV file")
    source_group.add_argument("--device", type=int, default=None, help="Audio input device ID")
    tune_parser.add_argument(
        "--mode",
        choices=[m.value for m in TuningMode],
        default=TuningMode.QUICK.value,
        help="quick calibrates A4 to the piano; concert uses 440 Hz (default: quick)",
    )
    tune_parser.add_argument(
        "--resume", action="store_true", help="Continue the saved session if there is one"
    )
    tune_parser.add_argument("--window-size", type=int, default=None, help="Samples per window")
    tune_parser.add_argument(
        "--no-input", action="store_true", help="Do not read commands from stdin"
    )

    tone_parser = subparsers.add_parser(
        "tone", parents=[debug_parent], help="Play the tuning target of a key"
    )
    tone_parser.add_argument("note", help="Note name, e.g. A4 or C#5")
    tone_parser.add_argument("--a4", type=float, default=440.0, help="A4 reference in Hz")
    tone_parser.add_argument(
        "--no-stretch", action="store_true", help="Plain equal temperament target"
    )
    tone_parser.add_argument(
        "--duration", type=float, default=2.0, help="Length in seconds (default: 2)"
    )
    tone_output = tone_parser.add_mutually_exclusive_group()
    tone_output.add_argument("--device", type=int, default=None, help="Audio output device ID")
    tone_output.add_argument("--out", default=None, help="Write the tone to a WAV file instead")

    subparsers.add_parser("devices", parents=[debug_parent], help="List audio input devices")
    subparsers.add_parser("status", parents=[debug_parent], help="Show the saved session")
    subparsers.add_parser("reset", parents=[debug_parent], help="Delete the saved session")

    parsed_args = parser.parse_args(args)
    if parsed_args.command is None:
        parser.print_help()
        return 1

    setup_logging(level="DEBUG" if parsed_args.debug else "WARNING")

    config_manager = ConfigManager(parsed_args.config_dir)
    session_file = parsed_args.session_file or config_manager.config_dir / "session.json"
    store = SessionStore(session_file)

    if parsed_args.command in ("detect", "tune") and parsed_args.window_size is None:
        parsed_args.window_size = int(
            config_manager.get_config("audio_input").get("window_size", 4096)
        )

    if parsed_args.command == "notes":
        show_notes(parsed_args.a4, not parsed_args.no_stretch)
        return 0
    elif parsed_args.command == "detect":
        return detect_file(parsed_args.wav, config_manager, parsed_args.window_size)
    elif parsed_args.command == "tune":
        return tune(parsed_args, config_manager, store)
    elif parsed_args.command == "tone":
        return play_tone(parsed_args, config_manager)
    elif parsed_args.command == "devices":
        return show_devices()
    elif parsed_args.command == "status":
        return show_status(store)
    elif parsed_args.command == "reset":
        if store.clear():
            print("Saved session removed")
            return 0
        return 1

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
