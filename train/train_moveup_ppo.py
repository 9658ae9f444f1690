"""
Training script for the MoveUpEnv.
Uses Stable Baselines3 to train a PPO agent that picks the station an ambulance moves up to.

Action space:
- Discrete space of station indices

The trained policy is used in simulations through
``LearnedPolicyStrategy(encoder, SB3PolicyApproximator(model))``.
"""

import argparse
import json
import logging
from datetime import datetime
from pathlib import Path

from stable_baselines3 import PPO
from stable_baselines3.common.callbacks import CheckpointCallback
from stable_baselines3.common.env_util import make_vec_env

from ems_moveup.encoding import StationOccupancyEncoder
from ems_moveup.rl import MoveUpEnv
from ems_moveup.simulator.replication import split_calls
from ems_moveup.simulator.synthetic import build_grid_scenario

# Training parameters
TOTAL_TIMESTEPS = 200000
SAVE_FREQ = 10000  # How often to save checkpoints (set to 0 to disable)
LOG_DIR = Path("logs/moveup_ppo")
MODEL_DIR = Path("models")
MODEL_NAME = "moveup_ppo_v1"

HYPERPARAMETERS = {
    "learning_rate": 3e-4,
    "n_steps": 1024,
    "batch_size": 64,
    "gamma": 0.99,
    "ent_coef": 0.01,
}


def create_env(args):
    """Create the environment on a synthetic grid scenario."""
    scenario = build_grid_scenario(
        rows=args.grid_size, cols=args.grid_size,
        num_stations=args.num_stations,
        num_ambulances=args.num_ambulances,
        num_calls=args.num_calls,
        calls_per_hour=args.calls_per_hour,
        seed=args.seed,
    )
    base_state = scenario.create_state()
    return MoveUpEnv(
        base_state,
        StationOccupancyEncoder.from_state(base_state),
        call_sets=split_calls(base_state.calls, args.num_call_sets),
        response_threshold=args.response_threshold,
    )


def main():
    parser = argparse.ArgumentParser(description="Train a PPO move-up policy")
    parser.add_argument("--timesteps", type=int, default=TOTAL_TIMESTEPS, help="Total training timesteps")
    parser.add_argument("--grid-size", type=int, default=8)
    parser.add_argument("--num-stations", type=int, default=5)
    parser.add_argument("--num-ambulances", type=int, default=6)
    parser.add_argument("--num-calls", type=int, default=2000)
    parser.add_argument("--num-call-sets", type=int, default=10, help="Episodes are sampled from this many call sets")
    parser.add_argument("--calls-per-hour", type=float, default=6.0)
    parser.add_argument("--response-threshold", type=float, default=8.0)
    parser.add_argument("--seed", type=int, default=0)
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    # rejected move-ups are expected while the policy explores
    logging.getLogger("ems_moveup.simulator.moveup").setLevel(logging.ERROR)

    LOG_DIR.mkdir(parents=True, exist_ok=True)
    MODEL_DIR.mkdir(parents=True, exist_ok=True)

    print("Creating environment...")
    vec_env = make_vec_env(lambda: create_env(args), n_envs=1, seed=args.seed)

    print("Creating agent...")
    model = PPO(
        "MlpPolicy",
        vec_env,
        verbose=1,
        tensorboard_log=str(LOG_DIR),
        seed=args.seed,
        **HYPERPARAMETERS,
    )

    callbacks = []
    if SAVE_FREQ > 0:
        callbacks.append(CheckpointCallback(
            save_freq=SAVE_FREQ,
            save_path=str(MODEL_DIR),
            name_prefix=MODEL_NAME
        ))
        print(f"Will save checkpoints every {SAVE_FREQ} steps")

    print("Starting training...")
    model.learn(total_timesteps=args.timesteps, callback=callbacks or None)

    final_model_path = MODEL_DIR / f"{MODEL_NAME}_final"
    model.save(final_model_path)
    print(f"Model saved to {final_model_path}")

    training_info = {
        "hyperparameters": {**HYPERPARAMETERS, "total_timesteps": args.timesteps},
        "scenario": {k: v for k, v in vars(args).items() if k != "timesteps"},
        "metadata": {
            "timestamp": datetime.now().strftime("%Y-%m-%d_%H-%M-%S"),
            "model_name": MODEL_NAME,
            "final_model_path": str(final_model_path),
        },
    }
    info_path = MODEL_DIR / f"{MODEL_NAME}_info.json"
    with open(info_path, 'w') as f:
        json.dump(training_info, f, indent=2)
    print(f"Training info and hyperparameters saved to {info_path}")

    vec_env.close()


if __name__ == "__main__":
    main()
