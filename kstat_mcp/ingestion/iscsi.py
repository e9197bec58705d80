"""LIO iSCSI target layout from configfs (/sys/kernel/config/target).

    target/iscsi/<iqn>/tpgt_<n>/enable
    target/iscsi/<iqn>/tpgt_<n>/lun/lun_<m>/<link> -> target/core/<kind>_<i>/<object>
    target/iscsi/<iqn>/tpgt_<n>/lun/lun_<m>/statistics/scsi_tgt_port/{read_mbytes,...}
    target/core/<kind>_<i>/<object>/udev_path

Backstore resolution itself lives in parsing.configtree; this module walks the tree
and reads the companion attributes for each backstore kind.
"""
from __future__ import annotations
import os, glob
from dataclasses import dataclass
from typing import List, Optional, Tuple

from ..debug_util import dbg
from ..errors import DecodeError, KstatError, ResolutionError
from ..parsing.configtree import BackstoreEntry, RBDDevice, match_rbd_device, resolve_backstore
from ..parsing.values import parse_uint
from .fs import FS, configfs_root, read_trimmed, sys_root


@dataclass(frozen=True)
class LUN:
    name: str
    path: str
    backstore: BackstoreEntry


@dataclass(frozen=True)
class LunFailure:
    path: str
    error: ResolutionError


@dataclass(frozen=True)
class TPGT:
    name: str
    path: str
    enabled: bool
    luns: Tuple[LUN, ...] = ()
    failures: Tuple[LunFailure, ...] = ()


@dataclass(frozen=True)
class TargetStats:
    name: str
    tpgts: Tuple[TPGT, ...]


@dataclass(frozen=True)
class LunIO:
    read_mbytes: int
    write_mbytes: int
    in_cmds: int


@dataclass(frozen=True)
class FileIO:
    name: str
    instance: str
    object_name: str
    filename: str


@dataclass(frozen=True)
class IBlock:
    name: str
    instance: str
    object_name: str
    iblock: str


@dataclass(frozen=True)
class RDMCP:
    name: str
    object_name: str


def target_core_root() -> str:
    return os.path.join(configfs_root(), 'target', 'core')


def rbd_devices_root() -> str:
    return os.path.join(sys_root(), 'devices', 'rbd')


def read_enable(path: str) -> bool:
    """True when <path>/enable holds a positive number."""
    enable = os.path.join(path, 'enable')
    raw = read_trimmed(enable)
    try:
        return parse_uint(raw) > 0
    except DecodeError as e:
        raise DecodeError(f'{e.message} in {enable}', raw) from e


def is_enabled(path: str) -> bool:
    try:
        return read_enable(path)
    except KstatError as e:
        dbg('iscsi', 'enable unreadable path=%s err=%s', path, e)
        return False


def _glob_sorted(pattern: str) -> List[str]:
    return sorted(glob.glob(pattern))


def get_stats(iqn_path: str) -> TargetStats:
    """Walk one target IQN directory.

    LUNs are only resolved under enabled TPGTs. A LUN whose backstore link cannot be
    resolved is left out of ``luns`` and listed in ``failures``.
    """
    tpgts = []
    for tpgt_path in _glob_sorted(os.path.join(iqn_path, 'tpgt*')):
        enabled = is_enabled(tpgt_path)
        luns: List[LUN] = []
        failures: List[LunFailure] = []
        if enabled:
            for lun_path in _glob_sorted(os.path.join(tpgt_path, 'lun', 'lun*')):
                try:
                    entry = resolve_backstore(lun_path)
                except ResolutionError as e:
                    dbg('iscsi', 'drop_lun path=%s err=%s', lun_path, e)
                    failures.append(LunFailure(lun_path, e))
                    continue
                luns.append(LUN(name=os.path.basename(lun_path), path=lun_path, backstore=entry))
        tpgts.append(TPGT(
            name=os.path.basename(tpgt_path),
            path=tpgt_path,
            enabled=enabled,
            luns=tuple(luns),
            failures=tuple(failures),
        ))
    return TargetStats(name=os.path.basename(iqn_path.rstrip('/')), tpgts=tuple(tpgts))


def read_write_ops(target_root: str, iqn: str, tpgt: str, lun: str) -> LunIO:
    """Per-LUN traffic counters from statistics/scsi_tgt_port.

    ``target_root`` is the iscsi fabric directory (<configfs>/target/iscsi).
    """
    base = os.path.join(target_root, iqn, tpgt, 'lun', lun, 'statistics', 'scsi_tgt_port')
    values = {}
    for name in ('read_mbytes', 'write_mbytes', 'in_cmds'):
        path = os.path.join(base, name)
        raw = read_trimmed(path)
        try:
            values[name] = parse_uint(raw)
        except DecodeError as e:
            raise DecodeError(f'{e.message} in {path}', raw) from e
    return LunIO(**values)


def _udev_path(core_root: Optional[str], dirname: str, object_name: str) -> str:
    path = os.path.join(core_root or target_core_root(), dirname, object_name, 'udev_path')
    if not os.path.exists(path):
        raise ResolutionError(f'{dirname} is missing udev_path', path)
    return read_trimmed(path)


def get_fileio_udev(instance: str, object_name: str, core_root: Optional[str] = None) -> FileIO:
    name = f'fileio_{instance}'
    return FileIO(name=name, instance=instance, object_name=object_name,
                  filename=_udev_path(core_root, name, object_name))


def get_iblock_udev(instance: str, object_name: str, core_root: Optional[str] = None) -> IBlock:
    name = f'iblock_{instance}'
    return IBlock(name=name, instance=instance, object_name=object_name,
                  iblock=_udev_path(core_root, name, object_name))


def get_rbd_match(instance: str, pool_image: str, devices_root: Optional[str] = None) -> Optional[RBDDevice]:
    return match_rbd_device(devices_root or rbd_devices_root(), instance, pool_image)


def get_rdmcp_path(instance: str, object_name: str, core_root: Optional[str] = None) -> Optional[RDMCP]:
    """Return the RAM-disk object when it exists and is enabled, else None."""
    name = f'rd_mcp_{instance}'
    path = os.path.join(core_root or target_core_root(), name, object_name)
    if not os.path.isdir(path):
        raise ResolutionError('ram-disk object does not exist', path)
    if read_enable(path):
        return RDMCP(name=name, object_name=object_name)
    return None


def all_targets(fs: Optional[FS] = None) -> List[TargetStats]:
    fs = fs or FS.configfs()
    return [get_stats(p) for p in fs.glob('target', 'iscsi', 'iqn*')]
