"""Configuration for the bandwidth-shaping transform."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Union


class LossPolicy(Enum):
    """How a chunk over capacity is reduced.

    The values are the numeric codes accepted on the command line.
    """

    TAIL_DROP = 1
    UNIFORM_THIN = 2

    @classmethod
    def parse(cls, value: Union["LossPolicy", int, str]) -> "LossPolicy":
        """Accept a LossPolicy, its numeric code, or its name (any case, ``-`` or ``_``)."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            text = value.strip()
            if text.isdigit():
                value = int(text)
            else:
                key = text.upper().replace("-", "_")
                aliases = {"TAILDROP": "TAIL_DROP", "UNIFORMTHIN": "UNIFORM_THIN", "UNIFORM": "UNIFORM_THIN"}
                key = aliases.get(key, key)
                try:
                    return cls[key]
                except KeyError:
                    raise ValueError(f"Unknown loss policy: {value!r}") from None
        try:
            return cls(value)
        except ValueError:
            raise ValueError(f"Unknown loss policy: {value!r} (use 1 for tail drop, 2 for uniform thinning)") from None


@dataclass
class ShapingConfig:
    """Parameters of the simulated transmission channel.

    Attributes:
        chunk_duration_ms: Length of one shaping window in milliseconds
        bandwidth_mbps: Channel bandwidth in megabits per second
        policy: Reduction policy applied to chunks over capacity
        bits_per_event: Wire cost of one event
    """

    chunk_duration_ms: float = 50.0
    bandwidth_mbps: float = 25.0
    policy: LossPolicy = LossPolicy.TAIL_DROP
    bits_per_event: int = 32

    def __post_init__(self):
        self.policy = LossPolicy.parse(self.policy)

    @property
    def chunk_duration_us(self) -> int:
        return int(round(self.chunk_duration_ms * 1000))

    @property
    def target_bandwidth_bps(self) -> float:
        return self.bandwidth_mbps * 1_000_000

    @property
    def max_events_per_chunk(self) -> int:
        """Events that fit in one chunk: floor(bps * chunk seconds / bits per event)."""
        return int(self.target_bandwidth_bps * self.chunk_duration_us // (1_000_000 * self.bits_per_event))

    def validate(self) -> "ShapingConfig":
        """
        Check the parameters.

        Raises:
            ValueError: a duration, bandwidth or event size is not positive
        """
        if self.chunk_duration_us <= 0:
            raise ValueError(f"chunk_duration_ms must be positive (at least 1us), got {self.chunk_duration_ms}")
        if self.bandwidth_mbps <= 0:
            raise ValueError(f"bandwidth_mbps must be positive, got {self.bandwidth_mbps}")
        if self.bits_per_event <= 0:
            raise ValueError(f"bits_per_event must be positive, got {self.bits_per_event}")
        return self

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> "ShapingConfig":
        """Build a validated config; unknown keys raise ``ValueError``."""
        known = {"chunk_duration_ms", "bandwidth_mbps", "policy", "bits_per_event"}
        unknown = set(values) - known
        if unknown:
            raise ValueError(f"Unknown shaping options: {', '.join(sorted(unknown))}")
        return cls(**values).validate()


__all__ = ["LossPolicy", "ShapingConfig"]
