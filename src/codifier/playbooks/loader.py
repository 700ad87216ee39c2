"""Load playbook definitions from YAML.

Definitions live in one sub-directory per role::

    definitions/
        developer/initialize-project.yaml
        researcher/research-analyze.yaml

A playbook's id is its file name without the extension.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path

import yaml
from pydantic import ValidationError

from ..core.exceptions import ConfigException, NotFoundError
from .models import Playbook

logger = logging.getLogger(__name__)

PACKAGED_DEFINITIONS = Path(__file__).parent / "definitions"
YAML_SUFFIXES = (".yaml", ".yml")


class PlaybookLoader:
    """Reads and validates playbook files, caching parsed definitions."""

    def __init__(self, definitions_dir: Path | str | None = None):
        self.definitions_dir = Path(definitions_dir) if definitions_dir else PACKAGED_DEFINITIONS
        self._cache: dict[str, Playbook] = {}
        self._lock = threading.Lock()

    def load(self, playbook_id: str) -> Playbook:
        """Load a playbook by id.

        Raises:
            NotFoundError: No file matches, or the definition has no steps.
            ConfigException: The file exists but is not a valid playbook.
        """
        with self._lock:
            cached = self._cache.get(playbook_id)
        if cached is not None:
            return cached

        path = self._find(playbook_id)
        if path is None:
            raise NotFoundError("Playbook", playbook_id)

        playbook = self._parse(path)
        if not playbook.steps:
            raise NotFoundError("Playbook", f"{playbook_id} (no steps)")

        with self._lock:
            self._cache[playbook_id] = playbook
        return playbook

    def list_playbooks(self) -> list[Playbook]:
        """All valid playbooks; invalid files are logged and skipped."""
        playbooks = []
        for path in self._iter_files():
            try:
                playbook = self._parse(path)
            except ConfigException as e:
                logger.warning(f"Skipping invalid playbook file {path}: {e.message}")
                continue
            if not playbook.steps:
                logger.warning(f"Skipping playbook without steps: {path}")
                continue
            playbooks.append(playbook)
        logger.debug(f"Loaded {len(playbooks)} playbooks from {self.definitions_dir}")
        return playbooks

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()

    def _iter_files(self):
        if not self.definitions_dir.is_dir():
            raise ConfigException(f"Playbook definitions directory not found: {self.definitions_dir}")
        for role_dir in sorted(p for p in self.definitions_dir.iterdir() if p.is_dir()):
            for path in sorted(role_dir.iterdir()):
                if path.suffix in YAML_SUFFIXES and path.is_file():
                    yield path

    def _find(self, playbook_id: str) -> Path | None:
        for path in self._iter_files():
            if path.stem == playbook_id:
                return path
        return None

    def _parse(self, path: Path) -> Playbook:
        try:
            raw = yaml.safe_load(path.read_text(encoding="utf-8"))
        except OSError as e:
            raise ConfigException(f"Cannot read playbook file {path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigException(f"YAML parse error in {path}: {e}") from e

        if not isinstance(raw, dict):
            raise ConfigException(f"Invalid playbook schema in {path}: expected a mapping")

        try:
            playbook = Playbook.model_validate(raw)
        except ValidationError as e:
            issues = "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors())
            raise ConfigException(f"Invalid playbook schema in {path}: {issues}") from e

        logger.debug(f"Parsed playbook {playbook.id} from {path}")
        return playbook


_loader: PlaybookLoader | None = None


def get_loader() -> PlaybookLoader:
    """Process-wide loader honouring ``CODIFIER_PLAYBOOKS_DIR``."""
    global _loader
    if _loader is None:
        from ..core.config import get_config

        _loader = PlaybookLoader(get_config().playbooks_dir)
    return _loader


def clear_loader_cache() -> None:
    global _loader
    _loader = None
