from __future__ import annotations

import numbers
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

MIN_SAMPLE_INTERVAL = 1
MAX_SAMPLE_INTERVAL = 10
MIN_CORRELATION_STEPS = 100
MAX_CORRELATION_STEPS = 1000

KEYWORD = "compute_shc"
AXES = ("x", "y", "z")

# Row layout of the per-particle virial: xx, yy, zz, xy, xz, yz, yx, zx, zy.
VIRIAL_ROWS = ("xx", "yy", "zz", "xy", "xz", "yz", "yx", "zx", "zy")

# (sx, sy, sz) virial rows used as flux for each transport direction.
FLUX_ROWS = {
    "x": (0, 3, 4),
    "y": (6, 1, 5),
    "z": (7, 8, 2),
}


def _as_int(name: str, value) -> int:
    """Accept ints and integer-valued strings; reject bools, floats and junk."""
    if isinstance(value, bool):
        raise TypeError(f"{name} must be an integer, got {value!r}.")
    if isinstance(value, numbers.Integral):
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip(), 10)
        except ValueError as exc:
            raise ValueError(f"{name} must be an integer, got {value!r}.") from exc
    raise TypeError(f"{name} must be an integer, got {value!r}.")


def normalize_direction(direction) -> str:
    """
    Map an axis code to its name.

    Accepts ``"x" | "y" | "z"`` (any case) or the integer codes ``0 | 1 | 2``
    (also as strings, as they appear in run-input lines).
    """
    if isinstance(direction, str):
        key = direction.strip().lower()
        if key in AXES:
            return key
        if key in ("0", "1", "2"):
            return AXES[int(key)]
        raise ValueError(f"direction must be one of x, y, z (or 0, 1, 2), got {direction!r}.")
    if isinstance(direction, numbers.Integral) and not isinstance(direction, bool):
        if 0 <= int(direction) < 3:
            return AXES[int(direction)]
    raise ValueError(f"direction must be one of x, y, z (or 0, 1, 2), got {direction!r}.")


@dataclass(frozen=True)
class SHCConfig:
    """
    Parameters of a spectral heat current measurement.

    sample_interval: simulation steps between recorded samples, in [1, 10].
    num_correlation_steps: number of correlation lags ``Nc``, in [100, 1000].
    direction: transport axis, stored as ``"x" | "y" | "z"``.
    group_method / group_id: optional group selector; both or neither.
    """

    sample_interval: int
    num_correlation_steps: int
    direction: str = "x"
    group_method: Optional[int] = None
    group_id: Optional[int] = None

    def __post_init__(self) -> None:
        interval = _as_int("sample_interval", self.sample_interval)
        if not MIN_SAMPLE_INTERVAL <= interval <= MAX_SAMPLE_INTERVAL:
            raise ValueError(
                f"sample_interval must be in [{MIN_SAMPLE_INTERVAL}, {MAX_SAMPLE_INTERVAL}], got {interval}."
            )
        nc = _as_int("num_correlation_steps", self.num_correlation_steps)
        if not MIN_CORRELATION_STEPS <= nc <= MAX_CORRELATION_STEPS:
            raise ValueError(
                f"num_correlation_steps must be in [{MIN_CORRELATION_STEPS}, {MAX_CORRELATION_STEPS}], got {nc}."
            )
        direction = normalize_direction(self.direction)

        if (self.group_method is None) != (self.group_id is None):
            raise ValueError("group_method and group_id must be given together.")
        method = group_id = None
        if self.group_method is not None:
            method = _as_int("group_method", self.group_method)
            group_id = _as_int("group_id", self.group_id)
            if method < 0:
                raise ValueError(f"group_method must be non-negative, got {method}.")
            if group_id < 0:
                raise ValueError(f"group_id must be non-negative, got {group_id}.")

        # Store normalized values back (frozen dataclass workaround)
        object.__setattr__(self, "sample_interval", interval)
        object.__setattr__(self, "num_correlation_steps", nc)
        object.__setattr__(self, "direction", direction)
        object.__setattr__(self, "group_method", method)
        object.__setattr__(self, "group_id", group_id)

    @property
    def uses_group(self) -> bool:
        return self.group_method is not None

    @property
    def flux_rows(self) -> Tuple[int, int, int]:
        """Virial rows feeding (sx, sy, sz) for the configured direction."""
        return FLUX_ROWS[self.direction]

    @classmethod
    def from_tokens(cls, tokens: Sequence[str]) -> "SHCConfig":
        """
        Parse a run-input line split into tokens.

        Accepted forms::

            compute_shc <sample_interval> <Nc> <direction>
            compute_shc <sample_interval> <Nc> <direction> group <method> <id>
        """
        tokens = [str(t) for t in tokens]
        if not tokens or tokens[0] != KEYWORD:
            raise ValueError(f"Expected a '{KEYWORD}' line, got {tokens[:1]!r}.")
        if len(tokens) not in (4, 7):
            raise ValueError(f"{KEYWORD} takes 3 or 6 parameters, got {len(tokens) - 1}.")

        kwargs = {
            "sample_interval": _as_int("sample_interval", tokens[1]),
            "num_correlation_steps": _as_int("num_correlation_steps", tokens[2]),
            "direction": tokens[3],
        }
        if len(tokens) == 7:
            if tokens[4] != "group":
                raise ValueError(f"Unrecognized {KEYWORD} keyword {tokens[4]!r}; expected 'group'.")
            kwargs["group_method"] = _as_int("group_method", tokens[5])
            kwargs["group_id"] = _as_int("group_id", tokens[6])
        return cls(**kwargs)

    def describe(self) -> str:
        tracked = (
            f"group {self.group_id} of grouping method {self.group_method}"
            if self.uses_group
            else "all particles"
        )
        return (
            f"sample_interval={self.sample_interval}, Nc={self.num_correlation_steps}, "
            f"direction={self.direction}, tracking {tracked}"
        )
