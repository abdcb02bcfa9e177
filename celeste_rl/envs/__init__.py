"""
Gymnasium environment for Celeste RL.

Exports CelesteEnv, which wraps AgentServer and implements the standard
gym.Env interface (reset, step, observation_space, action_space).
"""

from celeste_rl.envs.celeste_env import CelesteEnv

__all__ = ["CelesteEnv"]
