"""
Applies agent ACK messages to the host's virtual input device.
"""

import logging
from typing import Optional

from celeste_rl.bridge_interaction.host import VirtualAxis, VirtualButton, VirtualInputDevice
from celeste_rl.bridge_interaction.messages import AckMessage

log = logging.getLogger(__name__)


def _apply_axis(axis: VirtualAxis, value: Optional[float]) -> None:
    if value is None:
        return
    if value == 0:
        axis.set_neutral()
    else:
        axis.set_value(value)


def _apply_button(button: VirtualButton, pressed: Optional[bool]) -> None:
    if pressed is None:
        return
    if pressed:
        button.press()
    else:
        button.release()


def apply_action(device: VirtualInputDevice, action: AckMessage) -> None:
    """Set every control present in the message; absent controls keep their state."""
    _apply_axis(device.move_x, action.move_x)
    _apply_axis(device.move_y, action.move_y)
    _apply_button(device.jump, action.jump)
    _apply_button(device.dash, action.dash)
    _apply_button(device.grab, action.grab)
    log.debug("Applied inputs from agent")


def reset_inputs(device: VirtualInputDevice) -> None:
    """Force all bindings to neutral/released."""
    device.move_x.set_neutral()
    device.move_y.set_neutral()

    device.jump.release()
    device.dash.release()
    device.grab.release()
    device.talk.release()
    device.crouch_dash.release()

    log.debug("Reset all gameplay inputs")
