import argparse
import json
import sys
from pathlib import Path

from .config import RingSettings
from .engine import PromotionEngine
from .errors import PromotionError
from .graph import GraphClient
from .logger import setup_logging, get_logger, level_for
from .models import PromotionConfig, Verbosity, REAL_STAGES
from .report import build_report, write_report, LOG_FILE


def build_parser(default_stage="dev"):
    parser = argparse.ArgumentParser(
        prog="ring-promoter",
        description="Promote an Intune policy to its next deployment ring once enough devices succeed",
    )
    parser.add_argument("--policy-id", required=True)
    parser.add_argument("--threshold", type=int, default=80, help="Success rate (1-100) required to promote")
    parser.add_argument("--stage", choices=[s.value for s in REAL_STAGES], default=default_stage)
    parser.add_argument("--auto-promote", action="store_true")
    parser.add_argument("--output-path", default="./reports")
    parser.add_argument("--verbosity", choices=[v.value for v in Verbosity], default=Verbosity.NORMAL.value)
    parser.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="Console log level; overrides --verbosity")
    return parser


def run(args, settings, client=None):
    """Evaluate one policy; returns the process exit code"""
    logger = get_logger("cli")
    config = PromotionConfig(
        threshold=args.threshold,
        current_stage=args.stage,
        auto_promote=args.auto_promote,
        output_path=args.output_path,
        verbosity=args.verbosity,
    )

    try:
        config.validate()
        if client is None:
            logger.info("Authenticating to Microsoft Graph")
            client = GraphClient(settings.require_token(), base_url=settings.graph_base_url)
        outcome = PromotionEngine(client, settings).evaluate_policy(args.policy_id, config)
    except PromotionError as e:
        logger.error(f"Error: {e}")
        return 1

    report = build_report(outcome)
    path = write_report(report, config.output_path)
    logger.info(f"Report written to {path}")
    print(json.dumps(report.to_dict(), indent=2))
    return 0 if outcome.ready_for_promotion else 1


def main(argv=None):
    settings, env_error = None, None
    try:
        settings = RingSettings.from_env()
    except PromotionError as e:
        env_error = e

    parser = build_parser(settings.default_stage.value if settings else "dev")
    args = parser.parse_args(argv)
    if env_error:
        parser.error(f"invalid environment: {env_error}")

    output = Path(args.output_path)
    output.mkdir(parents=True, exist_ok=True)
    setup_logging(args.log_level or level_for(args.verbosity), log_file=output / LOG_FILE)

    return run(args, settings)


if __name__ == "__main__":
    sys.exit(main())
