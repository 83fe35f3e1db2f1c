"""YAML cache of registered accessories.

The bridge keeps every accessory it has exposed (identity, context and
service structure) in a human-readable YAML file so that accessories
keep their identity across restarts::

    accessories:
      - uuid: "..."
        displayName: Living Room
        context: {...}
        services: [...]

Writes are atomic: the previous file is copied to ``<file>.bak``, the
new content goes to ``<file>.tmp`` and is moved into place with
``os.replace``.  Loads fall back to the backup when the primary file is
missing or corrupt, and return ``None`` when neither is usable.
"""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

logger = logging.getLogger(__name__)

#: One accessory as produced by ``Accessory.get_property_tree``.
AccessoryTree = Dict[str, Any]

_ROOT_KEY = "accessories"
_BACKUP_SUFFIX = ".bak"
_TMP_SUFFIX = ".tmp"


class AccessoryStore:
    """YAML-backed accessory cache with backup / recovery.

    Parameters
    ----------
    path:
        Path to the primary YAML file.  Parent directories are created
        on first :meth:`save`.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self._path = Path(path)
        self._backup_path = self._path.with_suffix(self._path.suffix + _BACKUP_SUFFIX)
        self._tmp_path = self._path.with_suffix(self._path.suffix + _TMP_SUFFIX)

    @property
    def path(self) -> Path:
        return self._path

    @property
    def backup_path(self) -> Path:
        return self._backup_path

    # ---- save ---------------------------------------------------------

    def save(self, accessories: List[AccessoryTree]) -> None:
        """Persist *accessories*, keeping the previous file as backup.

        Raises
        ------
        OSError
            If the file cannot be written.
        """
        self._path.parent.mkdir(parents=True, exist_ok=True)

        if self._path.is_file():
            try:
                shutil.copy2(self._path, self._backup_path)
            except OSError:
                logger.warning("Could not back up %s, continuing", self._path)

        try:
            with open(self._tmp_path, "w", encoding="utf-8") as fh:
                yaml.safe_dump(
                    {_ROOT_KEY: accessories},
                    fh,
                    default_flow_style=False,
                    allow_unicode=True,
                    sort_keys=False,
                )
            os.replace(self._tmp_path, self._path)
        except OSError:
            logger.error("Failed to write accessory cache %s", self._path)
            raise

        logger.info("Saved %d accessory(ies) to %s", len(accessories), self._path)

    # ---- load ---------------------------------------------------------

    def load(self) -> Optional[List[AccessoryTree]]:
        """Load cached accessories (primary file, then backup).

        Returns ``None`` if neither file is usable.
        """
        accessories = self._try_load(self._path)
        if accessories is not None:
            return accessories

        accessories = self._try_load(self._backup_path)
        if accessories is not None:
            logger.warning(
                "Accessory cache %s unusable, restored from %s",
                self._path, self._backup_path,
            )
            try:
                shutil.copy2(self._backup_path, self._path)
            except OSError:
                logger.warning("Could not restore %s from backup", self._path)
            return accessories

        logger.info("No cached accessories found at %s", self._path)
        return None

    def delete(self) -> None:
        """Remove the primary, backup and temporary files."""
        for p in (self._path, self._backup_path, self._tmp_path):
            try:
                p.unlink(missing_ok=True)
            except OSError:
                logger.warning("Could not remove %s", p)

    @staticmethod
    def _try_load(path: Path) -> Optional[List[AccessoryTree]]:
        if not path.is_file():
            return None
        try:
            with open(path, "r", encoding="utf-8") as fh:
                data = yaml.safe_load(fh)
        except (OSError, yaml.YAMLError) as exc:
            logger.warning("Failed to load %s: %s", path, exc)
            return None

        if not isinstance(data, dict) or not isinstance(data.get(_ROOT_KEY), list):
            logger.warning("Expected an '%s' list in %s", _ROOT_KEY, path)
            return None
        return [a for a in data[_ROOT_KEY] if isinstance(a, dict) and "uuid" in a]

    def __repr__(self) -> str:
        return f"AccessoryStore({str(self._path)!r})"
