"""Previous-value (zero-order hold) lookup into a concentration profile."""
import math
from typing import Sequence

import numpy as np

from .models import ConcentrationPoint


def interpolate(profile: Sequence[ConcentrationPoint], t: float) -> float:
    """Concentration in effect at time ``t`` (minutes).

    Equivalent to MATLAB ``interp1(..., 'previous', 'extrap')``: the value of
    the latest point with ``time_min <= t``; before the first point the first
    value is returned. Never blends between points. NaN for NaN ``t`` or an
    empty profile.
    """
    if t is None or math.isnan(t) or not profile:
        return math.nan

    times = np.fromiter((p.time_min for p in profile), dtype=float, count=len(profile))
    idx = int(np.searchsorted(times, t, side='right')) - 1
    if idx < 0:
        return profile[0].conc
    return profile[idx].conc


def interpolate_many(profile: Sequence[ConcentrationPoint], times: Sequence[float]) -> np.ndarray:
    """Vectorised ``interpolate`` over an array of query times."""
    query = np.asarray(times, dtype=float)
    if not profile:
        return np.full(query.shape, np.nan)

    t = np.fromiter((p.time_min for p in profile), dtype=float, count=len(profile))
    c = np.fromiter((p.conc for p in profile), dtype=float, count=len(profile))
    idx = np.clip(np.searchsorted(t, query, side='right') - 1, 0, None)
    out = c[idx]
    out[np.isnan(query)] = np.nan
    return out
