"""Command-line interface for audience-lab.

Each subcommand runs one pipeline and prints its outcome as a ``rich``
table, as JSON (``--format json``), or as NDJSON step events while the run
is in progress (``--stream``).  Pipeline modules are imported lazily so
that ``audience-lab info`` works without a provider SDK configured.

Entry point
-----------
``main()`` is registered as a console script in ``pyproject.toml``::

    [project.scripts]
    audience-lab = "audience_lab.cli:main"

Usage examples::

    audience-lab simulate --persona "Busy parent of two ..." --query "best family SUV"
    audience-lab social-icp https://www.instagram.com/somecreator
    audience-lab social-icp-v2 https://www.tiktok.com/@somecreator --depth deep --stream
    audience-lab brand https://example.com --format json
    audience-lab chat --search "What changed in running shoes this year?"
    audience-lab info
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import Awaitable, Callable
from dataclasses import replace
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    """Build the top-level argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="audience-lab",
        description=(
            "audience-lab -- simulate customer research journeys and derive "
            "audience segments with tool-calling language models."
        ),
    )
    parser.add_argument(
        "--version",
        action="store_true",
        default=False,
        help="Show version and exit.",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help=(
            "JSON config file with 'model', 'loop' and 'research' sections.  "
            "Defaults to AUDIENCE_LAB_* environment variables."
        ),
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level. (default: WARNING)",
    )

    # options shared by every pipeline subcommand
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--stream",
        action="store_true",
        default=False,
        help="Emit one NDJSON event per step on stdout while the run progresses.",
    )
    common.add_argument(
        "--format",
        type=str,
        default="table",
        choices=["table", "json"],
        help="Final output format. (default: table)",
    )
    common.add_argument(
        "--max-steps",
        type=int,
        default=None,
        help="Override the pipeline's step ceiling.",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available subcommands")

    # -- simulate ----------------------------------------------------------
    sim = subparsers.add_parser(
        "simulate",
        parents=[common],
        help="Simulate a persona's discovery/consideration/activation journey.",
    )
    sim.add_argument("--persona", type=str, required=True, help="ICP persona description.")
    sim.add_argument("--query", type=str, required=True, help="The persona's opening query.")
    sim.add_argument(
        "--no-extraction",
        action="store_true",
        default=False,
        help="Leave the extractEntities tool out of the registry.",
    )

    # -- social-icp --------------------------------------------------------
    icp = subparsers.add_parser(
        "social-icp",
        parents=[common],
        help="Generate follower ICP segments for a social profile.",
    )
    icp.add_argument("url", type=str, help="Social profile URL.")

    # -- social-icp-v2 -----------------------------------------------------
    icp2 = subparsers.add_parser(
        "social-icp-v2",
        parents=[common],
        help="Generate evidence-backed, validated ICP segments for a social profile.",
    )
    icp2.add_argument("url", type=str, nargs="+", help="Profile URL(s); the first is primary.")
    icp2.add_argument(
        "--article",
        type=str,
        action="append",
        default=[],
        help="Article/interview URL about the creator (repeatable, max 3 used).",
    )
    icp2.add_argument("--creator-name", type=str, default=None, help="Creator's real name.")
    icp2.add_argument(
        "--depth",
        type=str,
        default=None,
        choices=["quick", "standard", "deep"],
        help="Research depth.  Defaults to the configured research depth.",
    )

    # -- brand -------------------------------------------------------------
    brand = subparsers.add_parser(
        "brand",
        parents=[common],
        help="Derive topics, ICPs and journey queries from a brand website.",
    )
    brand.add_argument("url", type=str, help="Brand website URL.")

    # -- chat --------------------------------------------------------------
    chat = subparsers.add_parser(
        "chat",
        help="Stream a chat reply, optionally grounded in live web search.",
    )
    chat.add_argument("message", type=str, nargs="?", default=None, help="User message.")
    chat.add_argument(
        "--conversation",
        type=str,
        default=None,
        help=(
            "JSON file holding {\"messages\": [...], \"webSearch\": bool}.  "
            "The message argument, if given, is appended as a user turn."
        ),
    )
    chat.add_argument(
        "--search",
        action="store_true",
        default=False,
        help="Let the model search the web before answering.",
    )

    # -- info --------------------------------------------------------------
    subparsers.add_parser(
        "info",
        help="Show version, configuration and dependency status.",
    )

    return parser


# =========================================================================
# Helpers
# =========================================================================

def _load_config(args: argparse.Namespace) -> Any:
    from audience_lab.infrastructure.config import AppConfig, load_config_from_json

    if args.config is not None:
        config = load_config_from_json(Path(args.config).read_text(encoding="utf-8"))
    else:
        config = AppConfig.from_env()
    if getattr(args, "max_steps", None) is not None:
        config = replace(config, loop=replace(config.loop, max_steps=args.max_steps))
    config.validate()
    return config


def _write_line(line: str) -> None:
    sys.stdout.write(line + "\n")
    sys.stdout.flush()


async def _with_stream(
    stream: bool, run: Callable[[Any], Awaitable[Any]]
) -> Any:
    """Await ``run(channel)``, draining the channel to stdout when streaming."""
    if not stream:
        return await run(None)

    from audience_lab.infrastructure.channel import StepChannel, drain_to

    channel = StepChannel()
    outcome, _ = await asyncio.gather(run(channel), drain_to(channel, _write_line))
    return outcome


def _emit(args: argparse.Namespace, payload: dict[str, Any], render: Callable[[], None]) -> None:
    if args.stream or args.format == "json":
        _write_line(json.dumps({"type": "Result", **payload}, ensure_ascii=False, default=str))
    else:
        render()


# =========================================================================
# Subcommand handlers
# =========================================================================

def _cmd_simulate(args: argparse.Namespace) -> int:
    """Handle the ``simulate`` subcommand."""
    from audience_lab.pipelines.common import PipelineModels
    from audience_lab.pipelines.simulation import (
        DEFAULT_LOOP,
        SimulationRequest,
        run_simulation,
    )
    from audience_lab.presentation.console import ResultConsole

    config = _load_config(args)
    models = PipelineModels.from_config(config)
    request = SimulationRequest(persona=args.persona, initial_query=args.query)
    loop = replace(
        DEFAULT_LOOP,
        max_steps=args.max_steps or DEFAULT_LOOP.max_steps,
        strict_phase_order=config.loop.strict_phase_order,
    )

    outcome = asyncio.run(
        _with_stream(
            args.stream,
            lambda channel: run_simulation(
                models,
                request,
                config=loop,
                channel=channel,
                include_extraction=not args.no_extraction,
            ),
        )
    )
    _emit(args, outcome.to_dict(), lambda: ResultConsole().print_simulation(outcome))
    return 0 if outcome.completed else 2


def _cmd_social_icp(args: argparse.Namespace) -> int:
    """Handle the ``social-icp`` subcommand."""
    from audience_lab.pipelines.common import PipelineModels
    from audience_lab.pipelines.social_icp import DEFAULT_LOOP, run_social_icp
    from audience_lab.presentation.console import ResultConsole

    config = _load_config(args)
    models = PipelineModels.from_config(config)
    loop = replace(DEFAULT_LOOP, max_steps=args.max_steps or DEFAULT_LOOP.max_steps)

    outcome = asyncio.run(
        _with_stream(
            args.stream,
            lambda channel: run_social_icp(models, args.url, config=loop, channel=channel),
        )
    )
    _emit(args, outcome.to_dict(), lambda: ResultConsole().print_social_icp(outcome))
    return 0 if outcome.completed else 2


def _cmd_social_icp_v2(args: argparse.Namespace) -> int:
    """Handle the ``social-icp-v2`` subcommand."""
    from audience_lab.domain.enums import ResearchDepth
    from audience_lab.pipelines.common import PipelineModels
    from audience_lab.pipelines.social_icp_v2 import (
        DEFAULT_LOOP,
        EvidenceRequest,
        run_evidence_icp,
    )
    from audience_lab.presentation.console import ResultConsole

    config = _load_config(args)
    models = PipelineModels.from_config(config)
    depth = ResearchDepth(args.depth) if args.depth else config.research.depth
    request = EvidenceRequest(
        profile_urls=tuple(args.url),
        article_urls=tuple(args.article),
        creator_name=args.creator_name,
        research_depth=depth,
    )
    loop = replace(DEFAULT_LOOP, max_steps=args.max_steps or DEFAULT_LOOP.max_steps)

    outcome = asyncio.run(
        _with_stream(
            args.stream,
            lambda channel: run_evidence_icp(
                models, request, config=loop, research=config.research, channel=channel
            ),
        )
    )
    _emit(args, outcome.to_dict(), lambda: ResultConsole().print_evidence(outcome))
    return 0 if outcome.completed else 2


def _cmd_brand(args: argparse.Namespace) -> int:
    """Handle the ``brand`` subcommand."""
    from audience_lab.pipelines.brand import run_brand_pipeline
    from audience_lab.pipelines.common import PipelineModels
    from audience_lab.presentation.console import ResultConsole

    config = _load_config(args)
    models = PipelineModels.from_config(config)
    result = asyncio.run(run_brand_pipeline(models, args.url))
    _emit(args, result.to_wire(), lambda: ResultConsole().print_brand(result))
    return 0


def _cmd_chat(args: argparse.Namespace) -> int:
    """Handle the ``chat`` subcommand."""
    from audience_lab.infrastructure.llm import build_gateway
    from audience_lab.pipelines.chat import ChatRequest, ChatTurn, stream_chat

    if args.conversation is not None:
        body = json.loads(Path(args.conversation).read_text(encoding="utf-8"))
        request = ChatRequest.from_dict(body)
    else:
        request = ChatRequest(messages=())
    if args.message:
        request = replace(
            request, messages=(*request.messages, ChatTurn(role="user", content=args.message))
        )
    if not request.messages:
        print("Error: a message or --conversation is required", file=sys.stderr)
        return 1
    if args.search:
        request = replace(request, web_search=True)

    config = _load_config(args)
    gateway = build_gateway(config.model)

    async def _run() -> None:
        async for chunk in stream_chat(gateway, request):
            sys.stdout.write(chunk)
            sys.stdout.flush()

    asyncio.run(_run())
    _write_line("")
    return 0


def _cmd_info(args: argparse.Namespace) -> int:
    """Handle the ``info`` subcommand."""
    from audience_lab import __version__
    from audience_lab.infrastructure.llm.factory import LLMProviderFactory

    print(f"audience-lab v{__version__}")
    print()

    deps = {
        "langchain_core": "Chat model boundary (required)",
        "langgraph": "Brand research graph (required)",
        "pydantic": "Schemas and tool contracts (required)",
        "rich": "Console tables (required)",
        "langchain_openai": "OpenAI provider",
        "langchain_anthropic": "Anthropic provider",
    }
    print("Dependencies:")
    for pkg, desc in deps.items():
        try:
            mod = __import__(pkg)
        except ImportError:
            print(f"  [missing]   {pkg} -- {desc}")
            continue
        version = getattr(mod, "__version__", "unknown")
        print(f"  [installed] {pkg} {version} -- {desc}")
    print()

    print(f"Providers: {', '.join(LLMProviderFactory().registered_providers)}")
    print()

    from audience_lab.domain.exceptions import ConfigError

    try:
        config = _load_config(args)
    except (ConfigError, ValueError) as exc:
        print(f"Configuration: invalid ({exc})")
        return 1
    print("Configuration:")
    print(json.dumps(config.to_dict(), indent=2))
    return 0


# =========================================================================
# Main entry point
# =========================================================================

def main(argv: list[str] | None = None) -> None:
    """CLI entry point.

    Parameters
    ----------
    argv:
        Command-line arguments.  Defaults to ``sys.argv[1:]``.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    if args.version:
        from audience_lab import __version__
        print(f"audience-lab {__version__}")
        sys.exit(0)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    handlers: dict[str, Callable[[argparse.Namespace], int]] = {
        "simulate": _cmd_simulate,
        "social-icp": _cmd_social_icp,
        "social-icp-v2": _cmd_social_icp_v2,
        "brand": _cmd_brand,
        "chat": _cmd_chat,
        "info": _cmd_info,
    }

    handler = handlers.get(args.command)
    if handler is None:
        parser.print_help()
        sys.exit(1)

    try:
        exit_code = handler(args)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        exit_code = 130
    except Exception as exc:
        logger.debug("Command %s failed", args.command, exc_info=True)
        print(f"Error: {exc}", file=sys.stderr)
        exit_code = 1

    sys.exit(exit_code)
