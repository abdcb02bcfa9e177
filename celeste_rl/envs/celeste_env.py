"""
Gymnasium environment for Celeste RL.

CelesteEnv wraps AgentServer and implements the standard gym.Env interface.
- reset(seed, options): first call waits for the game to connect; later calls send "reset". Returns first obs and info.
- step(action): send the configured InputAction as an ACK, block until the game has advanced one frame,
  return (obs, reward, terminated, truncated, info).
- observation_space: Tuple(frame Box (1, H, W) grayscale, state_float Box).
- action_space: Discrete(n_actions).
- close(): send "shutdown" so the game disengages the bridge and runs unmodified.
"""

import math
from typing import Any, Dict, Optional, Tuple

import cv2
import gymnasium as gym
import numpy as np
import numpy.typing as npt

from config_files.config_loader import get_config
from celeste_rl.agent_interaction.agent_server import AgentServer
from celeste_rl.bridge_interaction.messages import AckMessage, Observation


def preprocess_frame(observation: Observation, w_downsized: int, h_downsized: int) -> npt.NDArray[np.uint8]:
    """RGBA frame -> (1, h_downsized, w_downsized) grayscale."""
    frame = observation.frame_array()
    gray = cv2.cvtColor(frame, cv2.COLOR_RGBA2GRAY)
    if gray.shape != (h_downsized, w_downsized):
        gray = cv2.resize(gray, (w_downsized, h_downsized), interpolation=cv2.INTER_AREA)
    return np.expand_dims(gray, 0)


def state_floats(observation: Observation) -> npt.NDArray[np.float32]:
    """[x, y, dx to target, dy to target, died, reached_next_room]"""
    return np.array(
        [
            observation.player_x,
            observation.player_y,
            observation.target_x - observation.player_x,
            observation.target_y - observation.player_y,
            float(observation.player_died),
            float(observation.reached_next_room),
        ],
        dtype=np.float32,
    )


def distance_to_target(observation: Observation) -> float:
    return math.hypot(observation.target_x - observation.player_x, observation.target_y - observation.player_y)


def _build_info(observation: Observation, step_idx: int) -> Dict[str, Any]:
    return {
        "level_name": observation.level_id,
        "player_position": (observation.player_x, observation.player_y),
        "distance_to_target": distance_to_target(observation),
        "step": step_idx,
    }


class CelesteEnv(gym.Env):
    """
    Gymnasium environment for Celeste RL.
    All game interaction goes through AgentServer; the game runs one frame per step().
    """

    metadata = {"render_modes": []}

    def __init__(self, config=None, server: Optional[AgentServer] = None):
        """
        Build env from config (or get_config() if config is None).
        server: optional pre-built AgentServer (default: listen on config.agent_host:config.agent_port).
        """
        super().__init__()
        cfg = config if config is not None else get_config()
        self._config = cfg
        self._server = server if server is not None else AgentServer.from_config(cfg)
        self._actions = [AckMessage(**a) for a in cfg.inputs_list]
        self._last_obs: Optional[Observation] = None
        self._step_idx = 0
        self.observation_space = gym.spaces.Tuple((
            gym.spaces.Box(
                low=0,
                high=255,
                shape=(1, cfg.h_downsized, cfg.w_downsized),
                dtype=np.uint8,
            ),
            gym.spaces.Box(
                low=-np.inf,
                high=np.inf,
                shape=(cfg.n_state_floats,),
                dtype=np.float32,
            ),
        ))
        self.action_space = gym.spaces.Discrete(len(self._actions))

    @property
    def server(self) -> AgentServer:
        return self._server

    def _to_obs(self, observation: Observation) -> Tuple[npt.NDArray, npt.NDArray]:
        cfg = self._config
        return preprocess_frame(observation, cfg.w_downsized, cfg.h_downsized), state_floats(observation)

    def _reward(self, previous: Observation, current: Observation) -> float:
        cfg = self._config
        reward = cfg.constant_reward_per_step
        reward += cfg.reward_per_px_closer_to_target * (distance_to_target(previous) - distance_to_target(current))
        if current.reached_next_room:
            reward += cfg.reward_next_room
        if current.player_died:
            reward += cfg.reward_death
        return float(reward)

    def reset(
        self,
        seed: Optional[int] = None,
        options: Optional[Dict[str, Any]] = None,
    ) -> Tuple[Tuple[npt.NDArray, npt.NDArray], Dict[str, Any]]:
        """
        Start or restart an episode.
        Without a game connection, wait for the game to connect and use its first observation.
        Otherwise ask the game to restore the start-of-episode session and wait for the first post-reset frame.
        """
        super().reset(seed=seed)
        if not self._server.connected:
            self._server.accept()
        elif self._last_obs is not None:
            self._server.send_reset()
        observation = self._server.read_observation()
        self._last_obs = observation
        self._step_idx = 0
        return self._to_obs(observation), _build_info(observation, self._step_idx)

    def step(
        self,
        action: int,
    ) -> Tuple[Tuple[npt.NDArray, npt.NDArray], float, bool, bool, Dict[str, Any]]:
        """
        Send action to the game and block until the next frame.
        Returns (obs, reward, terminated, truncated, info).
        """
        if self._last_obs is None:
            raise RuntimeError("call reset before step")
        self._server.send_action(self._actions[int(action)])
        observation = self._server.read_observation()
        reward = self._reward(self._last_obs, observation)
        self._last_obs = observation
        self._step_idx += 1
        terminated = observation.player_died or observation.reached_next_room
        truncated = not terminated and self._step_idx >= self._config.max_episode_steps
        return (
            self._to_obs(observation),
            reward,
            terminated,
            truncated,
            _build_info(observation, self._step_idx),
        )

    def close(self) -> None:
        if self._server.connected and self._last_obs is not None:
            self._server.send_shutdown()
        self._server.close()
        self._last_obs = None
        super().close()
