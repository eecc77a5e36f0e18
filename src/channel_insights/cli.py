"""Command line entry point.

Usage:
    channel-insights metrics @channel --max 30 --analysis
    channel-insights comments @channel --strategy keyword
    channel-insights comments --video VIDEO_ID
    channel-insights ideas @channel --prompt "a beginner series"

Prints the response envelope as JSON and exits 0 on success, 1 on failure.
"""

import argparse
import asyncio
import json
import sys

from channel_insights.config import LOG_LEVEL
from channel_insights.logging_setup import setup_logging
from channel_insights.service import ChannelAnalyzer, build_analyzer


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="channel-insights",
        description="Channel performance metrics, comment analysis and AI video ideas.",
    )
    parser.add_argument("--log-level", default=LOG_LEVEL)
    commands = parser.add_subparsers(dest="command", required=True)

    metrics = commands.add_parser("metrics", help="aggregate channel performance metrics")
    metrics.add_argument("source", help="channel id, @handle or channel URL")
    metrics.add_argument("--max", type=int, default=None, help="number of videos to analyze")
    metrics.add_argument(
        "--analysis", action="store_true", help="add an AI-written strategy analysis"
    )

    comments = commands.add_parser("comments", help="classify audience comments")
    comments.add_argument("source", nargs="?", default=None)
    comments.add_argument("--video", default=None, help="analyze a single video instead")
    comments.add_argument("--max", type=int, default=None, help="number of comments to analyze")
    comments.add_argument("--strategy", choices=["keyword", "generative"], default="generative")

    ideas = commands.add_parser("ideas", help="generate video ideas")
    ideas.add_argument("source")
    ideas.add_argument("--prompt", default=None, help="custom request to shape the ideas")

    return parser


async def _run(analyzer: ChannelAnalyzer, args: argparse.Namespace) -> dict:
    if args.command == "metrics":
        return await analyzer.analyze_metrics(args.source, args.max, args.analysis)
    if args.command == "comments":
        return await analyzer.analyze_comments(
            source_id=args.source,
            item_id=args.video,
            max_comments=args.max,
            strategy=args.strategy,
        )
    return await analyzer.generate_ideas(args.source, args.prompt)


def main(argv: list[str] | None = None) -> int:
    args = _parser().parse_args(argv)
    setup_logging(args.log_level.upper())

    response = asyncio.run(_run(build_analyzer(), args))
    json.dump(response, sys.stdout, indent=2, ensure_ascii=False)
    sys.stdout.write("\n")
    return 0 if response["success"] else 1


if __name__ == "__main__":
    sys.exit(main())
