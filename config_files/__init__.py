"""
Configuration package for celeste_rl.

Configuration is loaded from YAML files via Pydantic (machine-specific endpoints from .env).
Use: python scripts/run_random_agent.py --config config_files/bridge/config_default.yaml

- config_loader: load_config(), build_config(), get_config(), set_config()
- config_schema: Pydantic models for validation
"""

from config_files.config_loader import build_config, get_config, load_config, set_config

__all__ = [
    "build_config",
    "get_config",
    "load_config",
    "set_config",
]
