from __future__ import annotations

import threading
from pathlib import Path
from typing import Iterable, List, Optional

from svcguard.core.naming import missing_services, same_service, unique_services
from svcguard.utils.diagnostics import ConfigStoreIOError


class ConfigStore:
    """Line-oriented keep-stopped list guarded by one exclusive section.

    Every public operation runs under the store's lock, so a read-modify-write
    inside one call never interleaves with another call on the same store.
    Callers that read first and mutate later must re-read if freshness matters.
    """

    def __init__(self, path: Path, lock: Optional[threading.RLock] = None) -> None:
        self.path = path
        self.lock = lock or threading.RLock()

    def read_all(self) -> List[str]:
        """Return trimmed, non-empty, case-insensitively distinct names in file order."""
        with self.lock:
            return unique_services(self._read_lines())

    def append_missing(self, candidates: Iterable[str]) -> List[str]:
        """Append candidates not already present; returns the names actually appended."""
        with self.lock:
            new_names = missing_services(candidates, self._read_lines())
            if not new_names:
                return []

            self._append_lines(new_names)
            return new_names

    def remove_one(self, name: str) -> bool:
        """Rewrite the store without any entry matching `name`; returns whether one was removed."""
        with self.lock:
            lines = self._read_lines()
            kept = [line for line in lines if not same_service(line, name)]
            if len(kept) == len(lines):
                return False

            self._write_lines(kept)
            return True

    def overwrite_all(self, names: Iterable[str]) -> None:
        """Replace the store contents with `names`."""
        with self.lock:
            self._write_lines(unique_services(names))

    def initialize_if_absent(self, defaults: Iterable[str]) -> List[str]:
        """Create the store from `defaults`, or merge missing defaults into an existing one.

        Returns the names written by this call.
        """
        defaults = list(defaults)
        with self.lock:
            if not self.path.exists():
                names = unique_services(defaults)
                self._write_lines(names)
                return names

            return self.append_missing(defaults)

    def _read_lines(self) -> List[str]:
        if not self.path.exists():
            return []

        try:
            content = self.path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigStoreIOError(self.path, str(exc)) from exc

        return [line.strip() for line in content.splitlines() if line.strip()]

    def _write_lines(self, names: List[str]) -> None:
        content = "".join(f"{name}\n" for name in names)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(content, encoding="utf-8")
        except OSError as exc:
            raise ConfigStoreIOError(self.path, str(exc)) from exc

    def _append_lines(self, names: List[str]) -> None:
        try:
            prefix = ""
            if self.path.exists():
                existing = self.path.read_text(encoding="utf-8")
                if existing and not existing.endswith("\n"):
                    prefix = "\n"
            else:
                self.path.parent.mkdir(parents=True, exist_ok=True)

            with self.path.open("a", encoding="utf-8") as handle:
                handle.write(prefix + "".join(f"{name}\n" for name in names))
        except OSError as exc:
            raise ConfigStoreIOError(self.path, str(exc)) from exc
