"""
Pydantic schemas for celeste_rl configuration.
All config sections with validation and computed fields.
"""

from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# --- Bridge (host side) ---
class BridgeConfig(BaseModel):
    # Global on/off switch. Cleared at runtime when the bridge disengages.
    enable_bridge: bool = True


# --- Transport ---
class TransportConfig(BaseModel):
    no_delay: bool = True
    reuse_address: bool = True
    recv_buffer_size: int = 1024
    # None blocks forever (lockstep baseline). A timeout is treated as a transport fault.
    receive_timeout_s: Optional[float] = None
    connect_timeout_s: Optional[float] = 5.0

    @field_validator("recv_buffer_size")
    @classmethod
    def check_buffer_size(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("recv_buffer_size must be positive")
        return v


# --- Scenario ---
class ScenarioConfig(BaseModel):
    # Goal of the prologue final dash
    target_x_position: float = 2000.0
    target_y_position: float = 60.0


# --- Environment (agent side) ---
class EnvironmentConfig(BaseModel):
    w_downsized: int = 160
    h_downsized: int = 90
    max_episode_steps: int = 3000
    accept_timeout_s: Optional[float] = None
    recv_chunk_size: int = 65536
    max_observation_bytes: int = 16 * 1024 * 1024
    n_state_floats: int = 6


# --- Rewards ---
class RewardsConfig(BaseModel):
    constant_reward_per_step: float = -0.01
    reward_per_px_closer_to_target: float = 0.01
    reward_next_room: float = 10.0
    reward_death: float = -5.0


# --- Input Action ---
class InputAction(BaseModel):
    move_x: float = 0.0
    move_y: float = 0.0
    jump: bool = False
    dash: bool = False
    grab: bool = False


def _default_actions() -> list[InputAction]:
    return [
        InputAction(),
        InputAction(move_x=-1.0),
        InputAction(move_x=1.0),
        InputAction(jump=True),
        InputAction(move_x=-1.0, jump=True),
        InputAction(move_x=1.0, jump=True),
        InputAction(move_x=1.0, dash=True),
        InputAction(move_x=1.0, move_y=-1.0, dash=True),
        InputAction(move_y=-1.0, dash=True),
        InputAction(grab=True),
    ]


# --- Inputs ---
class InputsConfig(BaseModel):
    actions: list[InputAction] = Field(default_factory=_default_actions)
    action_neutral_idx: int = 0

    @model_validator(mode="after")
    def check_neutral_idx(self) -> "InputsConfig":
        if not self.actions:
            raise ValueError("inputs.actions must not be empty")
        if not 0 <= self.action_neutral_idx < len(self.actions):
            raise ValueError(
                f"action_neutral_idx {self.action_neutral_idx} out of range for {len(self.actions)} actions"
            )
        return self


# --- User Config (from .env) ---
class UserConfig(BaseSettings):
    """Machine-specific settings loaded from .env. Env vars: AGENT_HOST, AGENT_PORT, BRIDGE_HOST, BRIDGE_PORT."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_prefix="",
    )

    agent_host: str = "127.0.0.1"
    agent_port: int = 5000
    bridge_host: str = "127.0.0.1"
    bridge_port: int = 5001


# --- Root Config ---
class CelesteConfig(BaseModel):
    bridge: BridgeConfig = Field(default_factory=BridgeConfig)
    transport: TransportConfig = Field(default_factory=TransportConfig)
    scenario: ScenarioConfig = Field(default_factory=ScenarioConfig)
    environment: EnvironmentConfig = Field(default_factory=EnvironmentConfig)
    rewards: RewardsConfig = Field(default_factory=RewardsConfig)
    inputs: InputsConfig = Field(default_factory=InputsConfig)
    user: UserConfig = Field(default_factory=UserConfig)
