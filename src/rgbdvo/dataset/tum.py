from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Iterator, List, Tuple

import cv2
import numpy as np

# max rgb/depth timestamp gap when associating rgb.txt with depth.txt
MAX_ASSOC_DT = 0.02


@dataclass
class TumRgbdEntry:
    ts: float
    rgb_path: str
    depth_path: str


def _read_list(txt_path: str) -> List[Tuple[float, str]]:
    rows: List[Tuple[float, str]] = []
    with open(txt_path, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if (not line) or line.startswith("#"):
                continue
            parts = line.split()
            if len(parts) < 2:
                continue
            rows.append((float(parts[0]), parts[1]))
    return rows


def _read_associate_txt(path: str) -> List[TumRgbdEntry]:
    """associate.txt lines: rgb_ts rgb_path depth_ts depth_path"""
    entries: List[TumRgbdEntry] = []
    base = os.path.dirname(path)
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if (not line) or line.startswith("#"):
                continue
            parts = line.split()
            if len(parts) < 4:
                continue
            entries.append(TumRgbdEntry(
                ts=float(parts[0]),
                rgb_path=os.path.join(base, parts[1]),
                depth_path=os.path.join(base, parts[3]),
            ))
    return entries


def associate(
    rgb: List[Tuple[float, str]],
    depth: List[Tuple[float, str]],
    max_dt: float = MAX_ASSOC_DT,
) -> List[Tuple[int, int]]:
    """Greedy one-to-one rgb/depth pairing by closest timestamp, returned in rgb order."""
    if not rgb or not depth:
        return []
    rgb_ts = np.array([r[0] for r in rgb])
    depth_ts = np.array([d[0] for d in depth])
    diff = np.abs(rgb_ts[:, None] - depth_ts[None, :])

    pairs = []
    used_rgb, used_depth = set(), set()
    for flat in np.argsort(diff, axis=None):
        i, j = np.unravel_index(flat, diff.shape)
        if diff[i, j] > max_dt:
            break
        if i in used_rgb or j in used_depth:
            continue
        used_rgb.add(i)
        used_depth.add(j)
        pairs.append((int(i), int(j)))
    pairs.sort()
    return pairs


class TumRgbdSequence:
    def __init__(self, seq_dir: str):
        self.seq_dir = seq_dir
        assoc_txt = os.path.join(seq_dir, "associate.txt")
        if os.path.isfile(assoc_txt):
            self.entries = _read_associate_txt(assoc_txt)
            return

        rgb_txt = os.path.join(seq_dir, "rgb.txt")
        depth_txt = os.path.join(seq_dir, "depth.txt")
        for p in (rgb_txt, depth_txt):
            if not os.path.isfile(p):
                raise FileNotFoundError(f"Missing {os.path.basename(p)}: {p}")
        rgb = _read_list(rgb_txt)
        depth = _read_list(depth_txt)
        self.entries = [
            TumRgbdEntry(
                ts=rgb[i][0],
                rgb_path=os.path.join(seq_dir, rgb[i][1]),
                depth_path=os.path.join(seq_dir, depth[j][1]),
            )
            for i, j in associate(rgb, depth)
        ]

    def __len__(self) -> int:
        return len(self.entries)

    def iter_frames(
        self,
        *,
        start: int = 0,
        step: int = 1,
        max_frames: int | None = None,
    ) -> Iterator[Tuple[int, float, np.ndarray, np.ndarray]]:
        """Yields (idx, ts, color BGR uint8, depth uint16)."""
        end = len(self.entries) if max_frames is None else min(len(self.entries), start + max_frames * step)
        idx = 0
        for i in range(start, end, step):
            e = self.entries[i]
            color = cv2.imread(e.rgb_path, cv2.IMREAD_COLOR)
            if color is None:
                raise FileNotFoundError(f"Failed to read image: {e.rgb_path}")
            depth = cv2.imread(e.depth_path, cv2.IMREAD_UNCHANGED)
            if depth is None:
                raise FileNotFoundError(f"Failed to read depth: {e.depth_path}")
            yield idx, e.ts, color, depth
            idx += 1
