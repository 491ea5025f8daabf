"""
File-based transcript persistence.
"""
import os
import logging

from ...interview.schemas import TranscriptSnapshot
from ...interview.services import TranscriptStore

logger = logging.getLogger("transcripts")


class JsonTranscriptStore(TranscriptStore):
    """Writes one `<session_id>.json` file per finished session."""

    def __init__(self, workdir: str):
        self.workdir = workdir
        os.makedirs(workdir, exist_ok=True)

    def path_for(self, session_id: str) -> str:
        return os.path.join(self.workdir, f"{session_id}.json")

    def save(self, snapshot: TranscriptSnapshot) -> None:
        path = self.path_for(snapshot.session_id)
        tmp_path = f"{path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            f.write(snapshot.model_dump_json(by_alias=True, indent=2))
        os.replace(tmp_path, path)
        logger.info(f"Saved transcript ({len(snapshot.transcript)} turns) to {path}")

    def load(self, session_id: str) -> TranscriptSnapshot:
        with open(self.path_for(session_id), "r", encoding="utf-8") as f:
            return TranscriptSnapshot.model_validate_json(f.read())
