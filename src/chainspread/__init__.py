"""Cross-chain price spread monitoring."""

from .monitor import Monitor
from .settings import MonitorSettings

__version__ = "0.1.0"

__all__ = ["Monitor", "MonitorSettings", "__version__"]
