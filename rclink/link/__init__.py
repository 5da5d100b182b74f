"""Link layer for the remote-controlled car.

This module provides:
- Connection/reconnection state machine (LinkStateMachine)
- Periodic command sender (ControlLoop, InputSource)
- Blocking facade for UI code (RemoteLink)
"""

from .control_loop import ControlLoop, InputSource
from .state_machine import LinkStateMachine
from .manager import RemoteLink

__all__ = [
    'ControlLoop',
    'InputSource',
    'LinkStateMachine',
    'RemoteLink',
]
