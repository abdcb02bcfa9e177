# =======================================================================================================================
# Drive the game through the lockstep bridge with uniformly random actions. Configuration from YAML file (--config).
# Start this first, then enable the bridge in the game: the game connects to the agent port on its first frame.
# =======================================================================================================================

import argparse
import logging
import signal
import sys
from pathlib import Path

parser = argparse.ArgumentParser(description="Run a random agent against the Celeste bridge")
parser.add_argument(
    "--config",
    type=str,
    default="config_files/bridge/config_default.yaml",
    help="Path to YAML config file",
)
parser.add_argument("--episodes", type=int, default=10, help="Number of episodes to run")
parser.add_argument("--seed", type=int, default=444)
parser.add_argument("-v", "--verbose", action="store_true")
args = parser.parse_args()
base_dir = Path(__file__).resolve().parents[1]
config_path = base_dir / args.config
if not config_path.is_file():
    print(f"ERROR: Config file not found: {config_path}")
    sys.exit(1)

from config_files.config_loader import get_config, load_config, set_config

set_config(load_config(config_path))

from celeste_rl.bridge_interaction.errors import TransportError
from celeste_rl.envs import CelesteEnv

logging.basicConfig(
    level=logging.DEBUG if args.verbose else logging.INFO,
    format="%(levelname)s:%(name)s:%(message)s",
)
log = logging.getLogger(__name__)


if __name__ == "__main__":
    config = get_config()
    env = CelesteEnv()

    def signal_handler(sig, frame):
        print("Received SIGINT signal. Shutting the bridge down.")
        env.close()
        sys.exit()

    signal.signal(signal.SIGINT, signal_handler)

    log.info("Waiting for the game on %s:%d", config.agent_host, env.server.port)
    env.action_space.seed(args.seed)
    try:
        for episode in range(args.episodes):
            obs, info = env.reset(seed=args.seed + episode)
            episode_return = 0.0
            terminated = truncated = False
            while not (terminated or truncated):
                obs, reward, terminated, truncated, info = env.step(env.action_space.sample())
                episode_return += reward
            log.info(
                "Episode %d: %d steps, return %.2f, level %s, %s",
                episode,
                info["step"],
                episode_return,
                info["level_name"],
                "terminated" if terminated else "truncated",
            )
    except TransportError as err:
        log.error("Lost the game connection: %s", err)
    finally:
        env.close()
