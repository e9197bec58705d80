"""Resolution of LIO configfs LUN directories to their backing stores.

Each LUN directory (.../tpgt_1/lun/lun_0) holds exactly one symlink pointing into the
core tree:

    lun_0/<link> -> ../../../../../../target/core/rd_mcp_0/ramdisk_lio_1G

The parent segment of the target is "<kind>_<instance>" and the leaf is the object
name. Kinds may themselves contain an underscore (rd_mcp), so a three-part split
rejoins the first two parts. Other segment counts are rejected rather than guessed.
"""
from __future__ import annotations
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Tuple, Union

from ..debug_util import dbg
from ..errors import ResolutionError

PathLike = Union[str, 'os.PathLike[str]']


class BackstoreKind(str, Enum):
    FILEIO = 'fileio'
    IBLOCK = 'iblock'
    RBD = 'rbd'
    RD_MCP = 'rd_mcp'


@dataclass(frozen=True)
class BackstoreEntry:
    kind: BackstoreKind
    instance: str
    object_name: str
    target: str


@dataclass(frozen=True)
class RBDDevice:
    name: str
    instance: str
    pool: str
    image: str


def split_backstore_dir(segment: str) -> Tuple[str, str]:
    """'iblock_3' -> ('iblock', '3'); 'rd_mcp_7' -> ('rd_mcp', '7')"""
    parts = segment.split('_')
    if len(parts) == 2:
        kind, instance = parts
    elif len(parts) == 3:
        kind, instance = f'{parts[0]}_{parts[1]}', parts[2]
    else:
        raise ResolutionError('malformed backstore name', segment)
    if not kind or not instance.isdigit():
        raise ResolutionError('malformed backstore name', segment)
    return kind, instance


def find_lun_link(lun_path: PathLike) -> str:
    """Return the target of the single symlink inside a LUN directory."""
    try:
        entries = sorted(os.scandir(lun_path), key=lambda e: e.name)
    except OSError as e:
        raise ResolutionError(f'cannot list LUN directory: {e.__class__.__name__}', str(lun_path)) from e
    links = [e for e in entries if e.is_symlink()]
    if not links:
        raise ResolutionError('LUN link does not exist', str(lun_path))
    if len(links) > 1:
        raise ResolutionError(f'ambiguous LUN links: {[e.name for e in links]}', str(lun_path))
    try:
        return os.readlink(links[0].path)
    except OSError as e:
        raise ResolutionError(f'readlink failed: {e.__class__.__name__}', links[0].path) from e


def decompose_target(target: str) -> BackstoreEntry:
    parts = [p for p in Path(target).parts if p not in ('/', '')]
    if len(parts) < 2:
        raise ResolutionError('link target too short to decompose', target)
    kind_text, instance = split_backstore_dir(parts[-2])
    try:
        kind = BackstoreKind(kind_text)
    except ValueError:
        raise ResolutionError('unknown backstore kind', parts[-2]) from None
    return BackstoreEntry(kind=kind, instance=instance, object_name=parts[-1], target=target)


def resolve_backstore(lun_path: PathLike) -> BackstoreEntry:
    entry = decompose_target(find_lun_link(lun_path))
    dbg('configtree', 'resolved lun=%s kind=%s instance=%s object=%s',
        lun_path, entry.kind.value, entry.instance, entry.object_name)
    return entry


def _read_trimmed(path: Path) -> Optional[str]:
    try:
        return path.read_text(encoding='utf-8').strip()
    except (OSError, UnicodeDecodeError) as e:
        dbg('configtree', 'unreadable path=%s err=%s', path, e.__class__.__name__)
        return None


def match_rbd_device(devices_root: PathLike, instance: str, pool_image: str) -> Optional[RBDDevice]:
    """Find the mapped RBD device backing ``rbd_<instance>/<pool_image>``.

    Looks at <devices_root>/<instance> (normally /sys/devices/rbd/<n>) and checks that its
    "<pool>-<image>" equals ``pool_image``. Returns None when nothing matches: a device
    that is mid attach/detach is simply not there yet.
    """
    if not instance.isdigit():
        return None
    dev = Path(devices_root) / instance
    if not dev.is_dir():
        return None
    pool = _read_trimmed(dev / 'pool')
    image = _read_trimmed(dev / 'name')
    if pool is None or image is None:
        return None
    if f'{pool}-{image}' != pool_image:
        return None
    return RBDDevice(name=f'rbd_{instance}', instance=instance, pool=pool, image=image)
