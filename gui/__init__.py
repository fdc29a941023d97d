__all__ = ["ControlPanel", "RunStatusSignals", "connect_status_signals"]

from .control_panel import ControlPanel
from .status_bridge import RunStatusSignals, connect_status_signals
