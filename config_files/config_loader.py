"""
Load configuration from YAML and .env.
Provides flat attribute access (config.agent_port, config.enable_bridge, ...) over the nested sections.
"""

from pathlib import Path
from typing import Any

import yaml

from config_files.config_schema import (
    BridgeConfig,
    CelesteConfig,
    EnvironmentConfig,
    InputAction,
    InputsConfig,
    RewardsConfig,
    ScenarioConfig,
    TransportConfig,
    UserConfig,
)

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent / "bridge" / "config_default.yaml"

# Lookup order for flat names
_SECTIONS = ("bridge", "transport", "scenario", "environment", "rewards", "inputs", "user")


class ConfigView:
    """
    Flat view over nested CelesteConfig.
    Section names (config.bridge, config.user, ...) return the section model itself, so runtime
    mutation goes through the section: config.bridge.enable_bridge = False.
    """

    def __init__(self, cfg: CelesteConfig):
        self._cfg = cfg

    @property
    def raw(self) -> CelesteConfig:
        return self._cfg

    def __getattr__(self, name: str) -> Any:
        m = self._cfg
        if name in type(m).model_fields:
            return getattr(m, name)
        # inputs: list of dicts, one per discrete action
        if name == "inputs_list":
            return [a.model_dump() for a in m.inputs.actions]
        for section in _SECTIONS:
            sub = getattr(m, section)
            if name in type(sub).model_fields:
                return getattr(sub, name)
        raise AttributeError(f"Config has no attribute '{name}'")


def build_config(data: dict[str, Any] | None = None) -> ConfigView:
    """Validate a config dict (same layout as the YAML file) into a ConfigView."""
    data = data or {}
    bridge = BridgeConfig.model_validate(data.get("bridge", {}))
    transport = TransportConfig.model_validate(data.get("transport", {}))
    scenario = ScenarioConfig.model_validate(data.get("scenario", {}))
    environment = EnvironmentConfig.model_validate(data.get("environment", {}))
    rewards = RewardsConfig.model_validate(data.get("rewards", {}))
    inputs_data = data.get("inputs", {})
    if "actions" in inputs_data:
        actions = [InputAction.model_validate(a) for a in inputs_data["actions"]]
        inputs = InputsConfig(
            actions=actions,
            action_neutral_idx=inputs_data.get("action_neutral_idx", 0),
        )
    else:
        inputs = InputsConfig.model_validate(inputs_data)
    # .env values first, explicit YAML values override
    user = UserConfig(**data.get("user", {}))

    cfg = CelesteConfig(
        bridge=bridge,
        transport=transport,
        scenario=scenario,
        environment=environment,
        rewards=rewards,
        inputs=inputs,
        user=user,
    )
    return ConfigView(cfg)


def load_config(config_path: Path | str = DEFAULT_CONFIG_PATH) -> ConfigView:
    """
    Load configuration from YAML file.
    User settings from .env are merged via UserConfig.
    """
    config_path = Path(config_path)
    with open(config_path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    return build_config(data)


# ---------------------------------------------------------------------------
# Module-level cache: set once per process, never reloaded in hot path
# ---------------------------------------------------------------------------
_config: ConfigView | None = None


def get_config() -> ConfigView:
    """Return the cached config. Must call set_config() first (at process startup)."""
    if _config is None:
        raise RuntimeError(
            "Config not initialized. Call set_config(load_config(path)) at process startup."
        )
    return _config


def set_config(cfg: ConfigView) -> None:
    """Set the cached config. Call once per process after load_config()."""
    global _config
    _config = cfg
