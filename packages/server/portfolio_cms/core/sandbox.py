"""
Path containment for every filesystem access.

All catalog, asset and icon paths are relative to one configured root. A
`PathSandbox` resolves them and refuses anything that lands outside the
root, so no user-supplied fragment (category, asset folder, stored asset
reference) reaches disk I/O without passing through `resolve`.
"""

from __future__ import annotations

import os
import posixpath
from pathlib import Path

from portfolio_cms.core.errors import PathEscape


def normalize_relative_path(value: object) -> str:
    """Turn a stored asset reference into a forward-slash, root-relative path."""
    return str(value or "").replace("\\", "/").lstrip("/")


def join_relative(*parts: str) -> str:
    return normalize_relative_path(posixpath.join(*parts))


class PathSandbox:
    """Resolves relative paths against a root and rejects escapes."""

    def __init__(self, root: str | os.PathLike):
        self._root = Path(os.path.realpath(root))

    @property
    def root(self) -> Path:
        return self._root

    def contains(self, target: str | os.PathLike) -> bool:
        absolute = os.path.realpath(target)
        try:
            relative = os.path.relpath(absolute, self._root)
        except ValueError:
            # Different drive on Windows
            return False
        if os.path.isabs(relative):
            return False
        return relative != os.pardir and not relative.startswith(os.pardir + os.sep)

    def check(self, target: str | os.PathLike) -> Path:
        """Return `target` as an absolute path, or raise if it is outside the root."""
        if not self.contains(target):
            raise PathEscape(f"Path outside portfolio root is not allowed: {target}")
        return Path(os.path.realpath(target))

    def resolve(self, relative_path: str | os.PathLike) -> Path:
        """Resolve a root-relative path. Absolute inputs must still lie under the root."""
        return self.check(os.path.join(self._root, relative_path))

    def relative(self, absolute: str | os.PathLike) -> str:
        """Inverse of `resolve`: a forward-slash path relative to the root."""
        checked = self.check(absolute)
        return Path(os.path.relpath(checked, self._root)).as_posix()

    def child(self, relative_dir: str) -> "PathSandbox":
        """A narrower sandbox rooted at a directory inside this one."""
        return PathSandbox(self.resolve(relative_dir))
