"""
Configuration for the MAF quality filter.
All parameters are checked when the configuration is built, so that a bad
setting is reported before any block is read.
"""

import logging
import math
from dataclasses import dataclass, field, asdict
from numbers import Integral, Real
from typing import List, Dict, Any

logger = logging.getLogger(__name__)


class ConfigurationError(ValueError):
    """
    Raised when the quality filter is configured with invalid parameters.
    """


def _check_positive_int(name: str, value) -> None:
    if isinstance(value, bool) or not isinstance(value, Integral) or value < 1:
        raise ConfigurationError(f"{name} must be a positive integer, got {value!r}")


@dataclass
class FilterConfig:
    """
    Construction-time parameters of the quality filter.

    :param species: Species whose quality scores must all be present for a block to be filtered.
    :param window_size: Number of columns in the sliding window.
    :param step: Number of columns the window moves at each step.
    :param min_quality: Windows with a mean quality below this value are removed.
    :param keep_discarded_blocks: Whether removed regions are kept in the discard buffer.
    """
    species: List[str] = field(default_factory=list)
    window_size: int = 10
    step: int = 1
    min_quality: float = 0.0
    keep_discarded_blocks: bool = False

    def __post_init__(self):
        self.species = list(self.species)
        if not self.species:
            raise ConfigurationError("At least one species is required")
        if len(set(self.species)) != len(self.species):
            raise ConfigurationError(f"Duplicate species in {self.species}")
        _check_positive_int("window_size", self.window_size)
        _check_positive_int("step", self.step)
        if isinstance(self.min_quality, bool) or not isinstance(self.min_quality, Real) \
                or not math.isfinite(self.min_quality):
            raise ConfigurationError(f"min_quality must be a finite number, got {self.min_quality!r}")
        if self.step > self.window_size:
            logger.warning(f"Step ({self.step}) is larger than the window size ({self.window_size}); "
                           f"some columns will not be evaluated.")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
