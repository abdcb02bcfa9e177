"""
Game-side half of the bridge.

Exports FrameGate, the object the host wires into its update/draw loop.
"""

from celeste_rl.bridge_interaction.frame_gate import BridgeContext, FrameGate

__all__ = ["BridgeContext", "FrameGate"]
