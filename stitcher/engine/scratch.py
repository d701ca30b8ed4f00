from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional, Union

from .utils import ensure_dir, remove_quietly

logger = logging.getLogger(__name__)

ROLES = ("v1", "v2", "v3", "narration", "list", "base", "final")


class ScratchSpace:
    """
    Job-scoped scratch files. Every name embeds the job id, so two jobs never
    share a path. Paths handed out are remembered so cleanup can find them.
    """

    def __init__(self, root: Union[str, Path], job_id: str):
        self.root = Path(root)
        self.job_id = job_id
        self._paths: Dict[str, Path] = {}

    def path(self, role: str, suffix: str = ".mp4") -> Path:
        if role not in ROLES:
            raise ValueError(f"unknown scratch role {role!r}")
        existing = self._paths.get(role)
        if existing is not None:
            return existing
        ensure_dir(self.root)
        p = self.root / f"{role}_{self.job_id}{suffix}"
        self._paths[role] = p
        return p

    def get(self, role: str) -> Optional[Path]:
        return self._paths.get(role)

    def paths(self) -> List[Path]:
        return list(self._paths.values())

    def release(self, *roles: str) -> None:
        """Delete the files for ``roles``; they are no longer needed by a later stage."""
        for role in roles:
            p = self._paths.get(role)
            if p is not None:
                remove_quietly(p)

    def cleanup(self, keep: tuple = ()) -> None:
        """Best-effort removal of every file handed out; safe to call repeatedly."""
        for role, p in self._paths.items():
            if role in keep:
                continue
            remove_quietly(p)
