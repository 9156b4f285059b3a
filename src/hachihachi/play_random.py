"""
Tiny CLI to run automated Hachi-Hachi matches.

Usage (from project root, after installing in editable mode):
    python -m hachihachi.play_random
    python -m hachihachi.play_random --mode env --rounds 6 --matches 10 --seed 1
"""
from __future__ import annotations

import argparse
import logging
import random

import numpy as np

from .agents import RandomAgent
from .env_game import HachiHachiEnv, StepResult
from .game import run_match_3p

MAX_STEPS = 100_000


def run_heuristic_match(num_rounds: int, rng: random.Random) -> tuple[float, float, float]:
    """All three seats played by the heuristic opponent."""
    totals, reports = run_match_3p(num_rounds=num_rounds, rng=rng)
    for i, report in enumerate(reports):
        logging.getLogger(__name__).info(
            "round %d: %s by %s, payments=%s",
            i + 1,
            report.termination_reason.value,
            report.terminating_player,
            report.payments,
        )
    return totals


def run_random_env_match(num_rounds: int, rng: random.Random, seed: int) -> tuple[float, int]:
    """Seat 0 picks uniformly among legal actions, the others use the heuristic."""
    env = HachiHachiEnv(num_rounds=num_rounds, learning_player=0, rng=rng)
    agent = RandomAgent(seed=seed)

    step: StepResult = env.reset()
    total_reward = 0.0
    steps = 0
    while not step.done and steps < MAX_STEPS:
        action = agent.act(step.obs, step.legal_actions_mask)
        step = env.step(action)
        total_reward += step.reward
        steps += 1
    return total_reward, steps


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Run automated Hachi-Hachi matches.")
    parser.add_argument(
        "--mode",
        choices=["heuristic", "env"],
        default="heuristic",
        help="heuristic: three heuristic seats; env: random agent in seat 0 through HachiHachiEnv.",
    )
    parser.add_argument("--rounds", type=int, default=12, help="Number of rounds per match.")
    parser.add_argument("--matches", type=int, default=1, help="Number of matches to run.")
    parser.add_argument("--seed", type=int, default=42, help="Random seed for reproducibility.")
    parser.add_argument("--verbose", action="store_true", help="Log rounds, captures and risk decisions.")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    rng = random.Random(args.seed)
    if args.mode == "heuristic":
        results = []
        for m in range(args.matches):
            totals = run_heuristic_match(args.rounds, rng)
            results.append(totals)
            print(f"match {m + 1}: rounds={args.rounds}, totals={totals}")
        means = np.mean(np.asarray(results, dtype=float), axis=0)
        print(f"mean totals over {args.matches} match(es): {tuple(round(float(x), 2) for x in means)}")
    else:
        rewards = []
        for m in range(args.matches):
            reward, steps = run_random_env_match(args.rounds, rng, seed=args.seed + m)
            rewards.append(reward)
            print(f"match {m + 1}: rounds={args.rounds}, steps={steps}, final_reward_for_player0={reward}")
        arr = np.asarray(rewards, dtype=float)
        print(f"player0 reward over {args.matches} match(es): mean={arr.mean():.2f} std={arr.std():.2f}")


if __name__ == "__main__":
    main()
