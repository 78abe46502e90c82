import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Union

from pydantic import ValidationError

from .schemas import StoreState

logger = logging.getLogger(__name__)

NAMESPACE = "interview"


class SessionStore:
    """
    Persisted holder of the active interview session and the completed list.

    The whole state lives in one JSON file under the ``"interview"`` key and is
    rewritten atomically on every save, so a restart picks up exactly what the
    last mutation left behind. Only SessionController should write to it.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.state = self._load()

    def _load(self) -> StoreState:
        if not self.path.exists():
            return StoreState()
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            return StoreState.model_validate(raw.get(NAMESPACE) or {})
        except (OSError, ValueError, AttributeError, ValidationError) as e:
            logger.warning(f"Discarding unreadable session store at {self.path}: {e}")
            return StoreState()

    def save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps({NAMESPACE: self.state.model_dump(mode="json")}, indent=2)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=".session_store.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_path, self.path)
        except OSError:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def reload(self) -> StoreState:
        self.state = self._load()
        return self.state
