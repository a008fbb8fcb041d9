"""Main CLI interface for nocheat."""

import argparse
import json
import logging
import sys

from .data.loader import DataLoader
from .engine.analysis import AnalysisEngine, EngineConfig
from .engine.rules import RuleThresholds
from .errors import DataValidationError, NoCheatError
from .ml.evaluation import evaluate_model, holdout_split
from .ml.forest import ForestParams
from .ml.model_store import default_model_path, load_model
from .ml.trainer import generate_default_model, train_model

CLI_ERRORS = (NoCheatError, OSError, ValueError)


def forest_params_from_args(args) -> ForestParams:
    return ForestParams(
        tree_count=args.trees,
        max_depth=args.max_depth,
        min_leaf_size=args.min_leaf_size,
        seed=args.seed,
        n_jobs=args.jobs,
    )


def _print_errors(exc: Exception) -> None:
    print(f"Error: {exc}")
    if isinstance(exc, DataValidationError):
        for message in exc.errors[:20]:
            print(f"   - {message}")
        if len(exc.errors) > 20:
            print(f"   ... and {len(exc.errors) - 20} more")


def train_default(args):
    """Train and save the built-in model from synthetic data."""
    output = args.output or default_model_path()
    print(f"Generating default model ({args.trees} trees) at {output}...")
    try:
        forest = generate_default_model(output, forest_params_from_args(args))
    except CLI_ERRORS as e:
        _print_errors(e)
        return 1

    print(f"✓ Saved {forest.tree_count} trees to {output}")
    return 0


def train_custom(args):
    """Train a model on labeled player data."""
    print(f"Loading training data from {args.input}...")
    try:
        stats = DataLoader.load_training_data(args.input)
    except CLI_ERRORS as e:
        _print_errors(e)
        return 1
    print(f"Loaded {len(stats)} labeled players")

    output = args.output or default_model_path()
    try:
        holdout = []
        if args.holdout:
            stats, holdout = holdout_split(stats, args.holdout, seed=args.seed)
            print(f"Holding out {len(holdout)} players for evaluation")

        forest = train_model(stats, path=output, params=forest_params_from_args(args))
        print(f"✓ Saved {forest.tree_count} trees to {output}")

        if holdout:
            print()
            print(evaluate_model(forest, holdout))
    except CLI_ERRORS as e:
        _print_errors(e)
        return 1
    return 0


def analyze(args):
    """Score a batch of players and report the most suspicious ones."""
    try:
        thresholds = RuleThresholds()
        if args.thresholds:
            with open(args.thresholds, "r", encoding="utf-8") as f:
                thresholds = RuleThresholds.from_dict(json.load(f))

        config = EngineConfig(
            model_path=args.model,
            synthesize_default=args.model is None,
            flag_blend_weight=args.blend,
            thresholds=thresholds,
        )
        print(f"Loading players from {args.input}...")
        batch = DataLoader.load_batch(args.input)
        response = AnalysisEngine(config=config).analyze(batch)
    except CLI_ERRORS as e:
        _print_errors(e)
        return 1

    ranked = sorted(response.results, key=lambda r: r.result.suspicion_score, reverse=True)

    print(f"\n{'='*60}")
    print(f"MOST SUSPICIOUS PLAYERS ({len(response)} analyzed)")
    print(f"{'='*60}\n")
    for rank, player in enumerate(ranked[:args.top], 1):
        flags = ", ".join(player.result.flags) or "-"
        print(f"{rank:>3}. {player.player_id:<24} {player.result.suspicion_score:6.1%}  {flags}")

    if args.output:
        print(f"\nSaving results to {args.output}...")
        try:
            DataLoader.save_response(response, args.output)
        except OSError as e:
            _print_errors(e)
            return 1
        print("✓ Done!")
    return 0


def evaluate(args):
    """Evaluate a saved model on labeled players."""
    try:
        forest = load_model(args.model)
        stats = DataLoader.load_training_data(args.input)
        report = evaluate_model(forest, stats, threshold=args.threshold)
    except CLI_ERRORS as e:
        _print_errors(e)
        return 1

    print(report)
    return 0


def _add_forest_arguments(parser) -> None:
    parser.add_argument("--output", "-o", default=None, help="Model output path (default: NOCHEAT_MODEL_PATH or models/cheat_model.bin)")
    parser.add_argument("--trees", type=int, default=100, help="Number of trees (default: 100)")
    parser.add_argument("--max-depth", type=int, default=12, help="Maximum tree depth (default: 12)")
    parser.add_argument("--min-leaf-size", type=int, default=2, help="Minimum samples to split a node (default: 2)")
    parser.add_argument("--seed", type=int, default=42, help="Random seed (default: 42)")
    parser.add_argument("--jobs", type=int, default=None, help="Worker processes (default: CPU count - 1)")


def main(argv=None):
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="nocheat - cheat detection for multiplayer game statistics"
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Train command
    train_parser = subparsers.add_parser("train", help="Train a detection model")
    train_sub = train_parser.add_subparsers(dest="mode", help="Training data source")

    default_parser = train_sub.add_parser("default", help="Train the built-in model on synthetic data")
    _add_forest_arguments(default_parser)

    custom_parser = train_sub.add_parser("custom", help="Train on labeled player data")
    custom_parser.add_argument("--input", "-i", required=True, help="Labeled player JSON (training_label on every record)")
    custom_parser.add_argument(
        "--holdout",
        type=float,
        default=0.0,
        help="Fraction of players held out for evaluation (0 disables, default: 0)",
    )
    _add_forest_arguments(custom_parser)

    # Analyze command
    analyze_parser = subparsers.add_parser("analyze", help="Score a batch of players")
    analyze_parser.add_argument("--input", "-i", required=True, help="Player statistics JSON")
    analyze_parser.add_argument("--model", "-m", default=None, help="Model file (default: NOCHEAT_MODEL_PATH or models/cheat_model.bin)")
    analyze_parser.add_argument("--output", "-o", default=None, help="Write the response JSON here")
    analyze_parser.add_argument("--thresholds", default=None, help="Rule thresholds JSON")
    analyze_parser.add_argument("--top", type=int, default=10, help="Players to list (default: 10)")
    analyze_parser.add_argument(
        "--blend",
        type=float,
        default=0.0,
        help="Weight of behavioral flags in the score, 0-1 (default: 0)",
    )

    # Evaluate command
    evaluate_parser = subparsers.add_parser("evaluate", help="Evaluate a model on labeled players")
    evaluate_parser.add_argument("--input", "-i", required=True, help="Labeled player JSON")
    evaluate_parser.add_argument("--model", "-m", required=True, help="Model file")
    evaluate_parser.add_argument("--threshold", type=float, default=0.5, help="Decision threshold (default: 0.5)")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "train":
        if args.mode == "default":
            return train_default(args)
        elif args.mode == "custom":
            return train_custom(args)
        train_parser.print_help()
        return 1
    elif args.command == "analyze":
        return analyze(args)
    elif args.command == "evaluate":
        return evaluate(args)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
