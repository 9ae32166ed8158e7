# config.py
import os
from dataclasses import dataclass

DEFAULT_HOST = os.environ.get("PROBE_HOST", "127.0.0.1")
DEFAULT_PORT = int(os.environ.get("PROBE_PORT", "11211"))
DEFAULT_PREFIX = os.environ.get("PROBE_PREFIX", "")


@dataclass(frozen=True)
class RunConfig:
    """Everything the probe needs for one run. Never changes after startup."""
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    prefix: str = DEFAULT_PREFIX
    key_max: int = 1000
    pace_us: int = 0            # 0 = unpaced
    report_s: float = 1.0       # 0 = no periodic report
    random_keys: bool = True
    connect_timeout_s: float = 5.0
    io_timeout_s: float = 0.0   # 0 = block forever
    count: int = 0              # 0 = run until interrupted
    plot_path: str = ""

    def __post_init__(self):
        if self.key_max < 1:
            raise ValueError(f"key_max must be >= 1, got {self.key_max}")
        if self.pace_us < 0:
            raise ValueError(f"pace_us must be >= 0, got {self.pace_us}")
        if self.report_s < 0:
            raise ValueError(f"report_s must be >= 0, got {self.report_s}")
        if self.count < 0:
            raise ValueError(f"count must be >= 0, got {self.count}")
