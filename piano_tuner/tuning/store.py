"""Saving and restoring the current session."""

import json
import os
import tempfile
from pathlib import Path
from typing import Optional, Union

from ..logger import get_logger
from .session import Session, TuningMode

logger = get_logger(__name__)

SNAPSHOT_VERSION = 1
SESSION_FILE = "session.json"


def default_session_path() -> Path:
    home = os.path.expanduser("~")
    return Path(home) / ".config" / "piano_tuner" / SESSION_FILE


class SessionStore:
    """Best-effort store for a single session snapshot.

    Writes go to a temporary file in the target directory and are moved into
    place with ``os.replace``, so the file on disk is always a complete
    snapshot. Failures are logged and reported through return values; they
    never raise.
    """

    def __init__(self, path: Optional[Union[str, Path]] = None) -> None:
        self.path = Path(path) if path is not None else default_session_path()

    def save(self, session: Session) -> bool:
        """Write the snapshot.

        Returns:
            True if saved successfully, False otherwise
        """
        snapshot = {"version": SNAPSHOT_VERSION, **session.to_dict()}
        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
            )
            with os.fdopen(fd, "w") as f:
                json.dump(snapshot, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
            logger.debug(
                f"Saved session to {self.path} (note {session.current_note_index})"
            )
            return True
        except (OSError, TypeError, ValueError) as e:
            logger.warning(f"Could not save session to {self.path}: {e}")
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    pass
            return False

    def load(self) -> Session:
        """Read the snapshot, or start a fresh quick-mode session."""
        session = self.restore()
        return session if session is not None else Session(mode=TuningMode.QUICK)

    def restore(self) -> Optional[Session]:
        """Read the snapshot.

        Returns:
            The saved session, or None if there is no usable snapshot. A
            missing, unreadable, corrupt or unknown-version file is not an
            error.
        """
        if not self.path.exists():
            logger.debug(f"No saved session at {self.path}")
            return None

        try:
            with open(self.path, "r") as f:
                data = json.load(f)
            if data.get("version") != SNAPSHOT_VERSION:
                raise ValueError(f"unsupported snapshot version {data.get('version')}")
            session = Session.from_dict(data)
            logger.info(
                f"Loaded session from {self.path}: {session.mode.value} mode, "
                f"A4 = {session.a4_reference:.2f} Hz, note {session.current_note_index}"
            )
            return session
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.error(f"Error loading session from {self.path}: {e}")
            return None

    def exists(self) -> bool:
        return self.path.exists()

    def clear(self) -> bool:
        """Delete the saved snapshot, if any."""
        try:
            self.path.unlink()
            logger.info(f"Removed saved session {self.path}")
            return True
        except FileNotFoundError:
            return True
        except OSError as e:
            logger.warning(f"Could not remove session {self.path}: {e}")
            return False
