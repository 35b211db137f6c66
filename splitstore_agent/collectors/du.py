"""
splitstore_agent.collectors.du
AUTHOR: carter-vin

Size prober
- Native equivalent of `du -s -B1 <root>/<target>`
- Counts allocated blocks (st_blocks * 512), not apparent size
- Hard-linked inodes counted once, symlinks never followed
- stdlib only
"""

from __future__ import annotations

import os
import stat
from pathlib import Path

# st_blocks is always expressed in 512-byte units, regardless of fs block size
BLOCK_UNIT_BYTES = 512


class ProbeError(Exception):
    """Size accounting failed for a target."""


class TargetNotFound(ProbeError):
    """Target path does not exist under the repo root."""


def allocated_bytes(st: os.stat_result) -> int:
    """
    Allocated size of one inode

    Platforms without st_blocks (Windows) fall back to the logical size
    """
    blocks = getattr(st, "st_blocks", None)
    if blocks is None:
        return st.st_size
    return blocks * BLOCK_UNIT_BYTES


def _walk_allocated(top: Path, top_stat: os.stat_result) -> int:
    total = allocated_bytes(top_stat)
    if not stat.S_ISDIR(top_stat.st_mode):
        return total

    seen: set[tuple[int, int]] = set()
    pending = [top]

    while pending:
        current = pending.pop()
        try:
            entries = os.scandir(current)
        except FileNotFoundError:
            # Subdirectory removed after it was listed
            if current is top:
                raise
            continue

        with entries:
            for entry in entries:
                try:
                    st = entry.stat(follow_symlinks=False)
                except FileNotFoundError:
                    # Removed between listing and stat (e.g. compaction)
                    continue

                if stat.S_ISDIR(st.st_mode):
                    total += allocated_bytes(st)
                    pending.append(Path(entry.path))
                    continue

                if st.st_nlink > 1:
                    key = (st.st_dev, st.st_ino)
                    if key in seen:
                        continue
                    seen.add(key)

                total += allocated_bytes(st)

    return total


def probe(root: str | os.PathLike[str], sub_path: str) -> int:
    """
    Total allocated bytes of root/sub_path

    Raises:
    - TargetNotFound if the path does not exist
    - ProbeError on any other IO failure (cause chained)
    """
    if not str(root):
        raise ProbeError("repo root must be a non-empty path")

    target = Path(root) / sub_path

    try:
        top_stat = target.lstat()
    except FileNotFoundError as e:
        raise TargetNotFound(f"{target} does not exist") from e
    except OSError as e:
        raise ProbeError(f"stat failed for {target}: {e}") from e

    try:
        return _walk_allocated(target, top_stat)
    except OSError as e:
        raise ProbeError(f"disk usage accounting failed for {target}: {e}") from e
