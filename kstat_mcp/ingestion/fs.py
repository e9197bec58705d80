"""Locating and opening kernel pseudo-files.

Mount roots come from the environment so the same readers work against a live host
or an extracted support bundle:

    KSTAT_PROC_ROOT      default /proc
    KSTAT_SYS_ROOT       default /sys
    KSTAT_CONFIGFS_ROOT  default <sys root>/kernel/config

Roots are looked up at call time, not import time, so tests and long-running servers
can repoint them.
"""
import os, glob
from typing import List, Optional

from ..debug_util import dbg
from ..errors import StreamError

DEFAULT_PROC_ROOT = '/proc'
DEFAULT_SYS_ROOT = '/sys'


def proc_root() -> str:
    return os.environ.get('KSTAT_PROC_ROOT', DEFAULT_PROC_ROOT)


def sys_root() -> str:
    return os.environ.get('KSTAT_SYS_ROOT', DEFAULT_SYS_ROOT)


def configfs_root() -> str:
    return os.environ.get('KSTAT_CONFIGFS_ROOT', os.path.join(sys_root(), 'kernel', 'config'))


class FS:
    """A pseudo-filesystem mount point (procfs, sysfs or configfs)."""

    def __init__(self, mount_point: str):
        if not os.path.isdir(mount_point):
            raise StreamError('mount point is not a directory', mount_point)
        self.root = mount_point

    @classmethod
    def proc(cls, mount_point: Optional[str] = None) -> 'FS':
        return cls(mount_point or proc_root())

    @classmethod
    def sys(cls, mount_point: Optional[str] = None) -> 'FS':
        return cls(mount_point or sys_root())

    @classmethod
    def configfs(cls, mount_point: Optional[str] = None) -> 'FS':
        return cls(mount_point or configfs_root())

    def path(self, *parts: str) -> str:
        return os.path.join(self.root, *parts)

    def open(self, *parts: str):
        """Open a pseudo-file in binary mode; OSError becomes StreamError."""
        p = self.path(*parts)
        try:
            return open(p, 'rb')
        except OSError as e:
            raise StreamError(f'cannot open: {e.__class__.__name__}', p) from e

    def glob(self, *parts: str) -> List[str]:
        matches = sorted(glob.glob(self.path(*parts)))
        dbg('fs', 'glob pattern=%s matches=%d', self.path(*parts), len(matches))
        return matches


def read_trimmed(path: str) -> str:
    """Read a single-value sysfs/configfs attribute file."""
    try:
        with open(path, 'r', encoding='utf-8') as fh:
            return fh.read().strip()
    except (OSError, UnicodeDecodeError) as e:
        raise StreamError(f'failed to read: {e.__class__.__name__}', path) from e
