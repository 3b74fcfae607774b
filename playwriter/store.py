"""Session record store.

One JSON file per session name under the configured state directory
(``tmp/playwriter/<session>.json`` by default). The record is the only
evidence that a session exists; the browser process itself is never
tracked beyond its CDP port.

There is no locking. Two invocations racing on the same session name get
no consistency guarantee.
"""

import os
from pathlib import Path
from typing import Optional

from .common import config_path, debug_log, load_state, save_state
from .models import SessionRecord


class SessionStore:
    """Keyed read/write/clear over per-session record files."""

    def __init__(self, state_dir: Optional[Path] = None):
        self.state_dir = Path(state_dir) if state_dir else config_path("state_dir")

    def path_for(self, session: str) -> Path:
        return self.state_dir / f"{session}.json"

    def read(self, session: str) -> Optional[SessionRecord]:
        """Return the record, or None when the file is missing or unreadable."""
        data = load_state(self.path_for(session))
        if not isinstance(data, dict):
            return None
        try:
            return SessionRecord.from_dict(data)
        except (KeyError, TypeError, ValueError):
            return None

    def write(self, record: SessionRecord):
        save_state(self.path_for(record.session), record.to_dict())
        debug_log(f"wrote session {record.session!r} port={record.port} "
                  f"external={record.external}", caller="store")

    def clear(self, session: str):
        path = self.path_for(session)
        if os.path.exists(path):
            os.unlink(path)
            debug_log(f"cleared session {session!r}", caller="store")
