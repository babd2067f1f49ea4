"""
Maintenance commands for weight files.

    revise optimize reviews.json --weights weights.json --output fitted.json
    revise show-weights weights.json

The review log file is a JSON list of ReviewLogEntry.to_dict() records, as
exported by the host application.
"""
import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from revise.core.config import settings
from revise.core.exceptions import ReviseError
from revise.core.logging import setup_logging
from revise.fsrs.card import ReviewLogEntry
from revise.fsrs.parameter_learning import FSRSOptimizer, OptimizerConfig
from revise.fsrs.weights import export_weights, load_weights

logger = logging.getLogger(__name__)


def read_review_log(path: Path) -> List[ReviewLogEntry]:
    with open(path) as f:
        records = json.load(f)
    return [ReviewLogEntry.from_dict(record) for record in records]


def cmd_optimize(args: argparse.Namespace) -> int:
    log = read_review_log(Path(args.log))
    initial = load_weights(args.weights or settings.WEIGHTS_PATH)

    config = OptimizerConfig.from_settings(settings)
    if args.max_iterations is not None:
        config.max_iterations = args.max_iterations
    optimizer = FSRSOptimizer(config)

    try:
        result = optimizer.fit(log, initial_weights=initial)
    except ReviseError as e:
        logger.error(f"Optimization failed: {e}")
        return 1

    print(json.dumps(result.to_dict(), indent=2))
    if args.output:
        export_weights(result.weights, args.output)
    return 0


def cmd_show_weights(args: argparse.Namespace) -> int:
    weights = load_weights(args.path or settings.WEIGHTS_PATH)
    print(json.dumps(weights.to_dict(), indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="revise", description="FSRS weight maintenance")
    sub = parser.add_subparsers(dest="command", required=True)

    optimize = sub.add_parser("optimize", help="Refit weights from an exported review log")
    optimize.add_argument("log", type=str, help="JSON review log")
    optimize.add_argument("--weights", type=str, default=None, help="Starting weights file")
    optimize.add_argument("--output", type=str, default=None, help="Where to write fitted weights")
    optimize.add_argument("--max-iterations", type=int, default=None, help="Override iteration cap")
    optimize.set_defaults(func=cmd_optimize)

    show = sub.add_parser("show-weights", help="Print the effective weight vector")
    show.add_argument("path", type=str, nargs="?", default=None, help="Weights file")
    show.set_defaults(func=cmd_show_weights)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    setup_logging(settings)
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
