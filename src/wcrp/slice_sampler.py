"""Univariate slice sampling with stepping out and shrinkage.

See Neal (2003), "Slice sampling", Annals of Statistics 31(3).
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Callable, Tuple

if TYPE_CHECKING:
    from .random_source import RandomSource


def slice_sample(
    generator: RandomSource,
    cur_val: float,
    cur_log_density: float,
    log_density: Callable[[float], float],
    lower_bound: float,
    upper_bound: float,
    bracket_width: float,
) -> Tuple[float, float]:
    """Draw a new value of a scalar from its conditional density.

    Args:
        generator: Random source.
        cur_val: Current value of the variable.
        cur_log_density: log_density(cur_val), already known to the caller.
        log_density: Unnormalized log density of the variable.
        lower_bound: Smallest value the variable may take.
        upper_bound: Largest value the variable may take.
        bracket_width: Width of the initial bracket and of each step out.

    Returns:
        Tuple of (new value, log_density(new value)).
    """
    slice_level = cur_log_density + math.log(generator.uniform01())
    split_location = generator.uniform01()
    x_l = max(lower_bound, cur_val - split_location * bracket_width)
    x_r = min(upper_bound, cur_val + (1.0 - split_location) * bracket_width)

    # step out
    while x_l >= lower_bound and log_density(x_l) > slice_level:
        x_l -= bracket_width
    x_l = max(x_l, lower_bound)

    while x_r <= upper_bound and log_density(x_r) > slice_level:
        x_r += bracket_width
    x_r = min(x_r, upper_bound)

    # shrink
    while True:
        proposal = x_l + (x_r - x_l) * generator.uniform01()
        proposal_log_density = log_density(proposal)
        if proposal_log_density > slice_level:
            return proposal, proposal_log_density
        if proposal > cur_val:
            x_r = proposal
        elif proposal < cur_val:
            x_l = proposal
        else:
            return proposal, proposal_log_density
