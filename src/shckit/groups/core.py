from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Sequence

import numpy as np
import pandas as pd


class Grouping:
    """
    One grouping method: every particle carries a non-negative integer label.

    Group ``g`` is the ordered (ascending) list of particles labelled ``g``.
    """

    def __init__(self, labels: Sequence[int], *, name: Optional[str] = None):
        labels = np.asarray(labels)
        if labels.ndim != 1 or labels.size == 0:
            raise ValueError("labels must be a non-empty 1D array, one label per particle.")
        if not np.issubdtype(labels.dtype, np.integer):
            raise TypeError("labels must be integers.")
        if labels.min() < 0:
            raise ValueError("labels must be non-negative.")
        self.name = name
        self.labels = labels.astype(int, copy=True)
        self.labels.setflags(write=False)

        self._sizes = np.bincount(self.labels)
        order = np.argsort(self.labels, kind="stable")
        offsets = np.concatenate([[0], np.cumsum(self._sizes)])
        self._contents: List[np.ndarray] = [order[offsets[g] : offsets[g + 1]] for g in range(self.num_groups)]

    @property
    def num_particles(self) -> int:
        return int(self.labels.size)

    @property
    def num_groups(self) -> int:
        return int(self._sizes.size)

    def _check_group(self, group_id: int) -> int:
        group_id = int(group_id)
        if not 0 <= group_id < self.num_groups:
            raise ValueError(f"group_id must be in [0, {self.num_groups}), got {group_id}.")
        return group_id

    def size(self, group_id: int) -> int:
        return int(self._sizes[self._check_group(group_id)])

    def contents(self, group_id: int) -> np.ndarray:
        """Particle indices of ``group_id`` in ascending order (read-only copy)."""
        out = self._contents[self._check_group(group_id)].copy()
        out.setflags(write=False)
        return out

    def sizes(self) -> np.ndarray:
        return self._sizes.copy()


class GroupRegistry:
    """
    Ordered collection of grouping methods, addressed by index.
    """

    def __init__(self, groupings: Iterable[Grouping] = ()):
        self.groupings: List[Grouping] = list(groupings)
        sizes = {g.num_particles for g in self.groupings}
        if len(sizes) > 1:
            raise ValueError("All grouping methods must label the same number of particles.")

    def __len__(self) -> int:
        return len(self.groupings)

    def add(self, grouping: Grouping) -> int:
        """Append a grouping method and return its index."""
        if self.groupings and grouping.num_particles != self.groupings[0].num_particles:
            raise ValueError("All grouping methods must label the same number of particles.")
        self.groupings.append(grouping)
        return len(self.groupings) - 1

    def _method(self, method: int) -> Grouping:
        method = int(method)
        if not 0 <= method < len(self.groupings):
            raise ValueError(f"grouping method must be in [0, {len(self.groupings)}), got {method}.")
        return self.groupings[method]

    def size(self, method: int, group_id: int) -> int:
        return self._method(method).size(group_id)

    def resolve(self, method: int, group_id: int) -> np.ndarray:
        """Ordered particle indices of group ``group_id`` under grouping ``method``."""
        grouping = self._method(method)
        contents = grouping.contents(group_id)
        if contents.size == 0:
            raise ValueError(f"group {group_id} of grouping method {method} is empty.")
        return contents

    @classmethod
    def from_dataframe(cls, df: pd.DataFrame, columns: Optional[Sequence[str]] = None) -> "GroupRegistry":
        """
        One grouping method per label column, in column order.
        Rows are particles in global order.
        """
        cols = list(columns) if columns is not None else list(df.columns)
        missing = [c for c in cols if c not in df.columns]
        if missing:
            raise KeyError(f"df missing columns: {missing}")
        return cls(Grouping(df[c].to_numpy(), name=str(c)) for c in cols)

    def summary_table(self) -> pd.DataFrame:
        """Long table: method, name, group_id, size."""
        rows: List[Dict[str, object]] = []
        for m, g in enumerate(self.groupings):
            for gid, n in enumerate(g.sizes()):
                rows.append({"method": m, "name": g.name, "group_id": gid, "size": int(n)})
        return pd.DataFrame(rows, columns=["method", "name", "group_id", "size"])
