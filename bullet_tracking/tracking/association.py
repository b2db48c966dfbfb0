from __future__ import annotations

from typing import List, Sequence, Tuple

import numpy as np
from scipy.optimize import linear_sum_assignment

from ..detection.types import iou_xyxy, xyxy_center, xyxy_diag

INVALID_COST = 1e9


def build_cost_matrix(
    track_boxes: Sequence[np.ndarray],
    det_boxes: Sequence[np.ndarray],
    min_iou: float,
    center_weight: float,
    gate_px: float = 0.0,
) -> np.ndarray:
    """Cost between each track's last box (rows) and each detection (cols).

    cost = (1 - IoU) + center_weight * center_distance / track_diag
    Pairs below `min_iou` are unassignable (INVALID_COST) unless `gate_px` > 0 and
    the centers lie within it; such pairs cost 1 + distance / gate_px, which ranks
    them after any overlapping pair.
    """
    cost = np.full((len(track_boxes), len(det_boxes)), INVALID_COST, dtype=float)
    det_centers = [np.array(xyxy_center(b)) for b in det_boxes]

    for i, tb in enumerate(track_boxes):
        tc = np.array(xyxy_center(tb))
        scale = xyxy_diag(tb)
        for j, db in enumerate(det_boxes):
            dist = float(np.linalg.norm(det_centers[j] - tc))
            iou = iou_xyxy(tb, db)
            if iou >= min_iou and iou > 0.0:
                cost[i, j] = (1.0 - iou) + center_weight * dist / scale
            elif gate_px > 0.0 and dist <= gate_px:
                cost[i, j] = 1.0 + center_weight + dist / gate_px
    return cost


def _tie_groups(cost: np.ndarray, eps: float) -> np.ndarray:
    """Snap each valid cost to the lowest cost of its tie group.

    Valid costs are walked in ascending order; a group starts at its lowest
    member and takes every following cost less than `eps` above it.
    """
    snapped = cost.astype(float).copy()
    if eps <= 0.0:
        return snapped
    valid = np.flatnonzero(snapped < INVALID_COST)
    if valid.size == 0:
        return snapped

    flat = snapped.reshape(-1)
    order = valid[np.argsort(flat[valid], kind="stable")]
    start = float(flat[order[0]])
    for k in order:
        c = float(flat[k])
        if c - start >= eps:
            start = c
        flat[k] = start
    return snapped


def greedy_assignment(
    cost: np.ndarray,
    track_priority: Sequence[Tuple[int, int]],
    tie_eps: float = 1e-6,
) -> List[Tuple[int, int]]:
    """Return (track_idx, det_idx) pairs, cheapest first.

    `track_priority[i]` is (misses, bullet number) for row i; among pairs whose cost
    differs by less than `tie_eps` the lower tuple wins, then the earlier detection.
    """
    cost = np.asarray(cost, dtype=float)
    n_trk, n_det = cost.shape
    pairs: List[Tuple[int, int]] = []
    if n_trk == 0 or n_det == 0:
        return pairs

    snapped = _tie_groups(cost, tie_eps)
    cand = []
    for i in range(n_trk):
        for j in range(n_det):
            c = float(snapped[i, j])
            if c < INVALID_COST:
                cand.append((c, track_priority[i], j, i))
    cand.sort()

    used_i = set()
    used_j = set()
    for _, _, j, i in cand:
        if i in used_i or j in used_j:
            continue
        used_i.add(i)
        used_j.add(j)
        pairs.append((i, j))
    return pairs


def hungarian_assignment(
    cost: np.ndarray,
    track_priority: Sequence[Tuple[int, int]],
    tie_eps: float = 1e-6,
) -> List[Tuple[int, int]]:
    """Optimal assignment; the tie-break is folded in as a bias smaller than tie_eps."""
    cost = np.asarray(cost, dtype=float)
    n_trk, n_det = cost.shape
    if n_trk == 0 or n_det == 0:
        return []

    rank = {row: r for r, row in enumerate(sorted(range(n_trk), key=lambda i: track_priority[i]))}
    bias = np.array([rank[i] for i in range(n_trk)], dtype=float)[:, None] * (tie_eps * 0.5 / max(1, n_trk))
    biased = np.where(cost < INVALID_COST, _tie_groups(cost, tie_eps) + bias, INVALID_COST)

    row_ind, col_ind = linear_sum_assignment(biased)
    pairs = [
        (int(i), int(j))
        for i, j in zip(row_ind.tolist(), col_ind.tolist())
        if float(cost[i, j]) < INVALID_COST
    ]
    pairs.sort(key=lambda p: p[0])
    return pairs
