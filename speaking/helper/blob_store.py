"""
Blob Store - Best-effort removal of recorded audio once a session is scored.
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Optional, Union

from .env import load_repo_dotenv

load_repo_dotenv()

DEFAULT_AUDIO_DIR = os.getenv("SPEAKING_AUDIO_DIR", "audio")


class LocalBlobStore:
    """
    Audio objects stored as files under a root directory.

    Object ids are paths relative to the root. Deleting an object that is
    already gone counts as success.
    """

    def __init__(self, root: Optional[Union[str, Path]] = None):
        self.root = Path(root or DEFAULT_AUDIO_DIR).resolve()

    def path_for(self, object_id: str) -> Path:
        path = (self.root / object_id).resolve()
        if self.root not in path.parents:
            raise ValueError(f"Object id escapes the audio root: {object_id!r}")
        return path

    def delete(self, object_id: str) -> None:
        self.path_for(object_id).unlink(missing_ok=True)
