# run.py
# Entry point. Config and wiring only. No logic lives here.
#
# Environment variables (or a .env file) set the defaults; flags override them.

import argparse

from interleaved_thinking.config import ServerConfig
from interleaved_thinking.display import StepDisplay
from interleaved_thinking.harness import ThinkingHarness
from interleaved_thinking.server import build_server


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the interleaved thinking MCP server on stdio")
    parser.add_argument("--max-tool-calls", type=int, help="Tool call budget per session")
    parser.add_argument("--timeout", type=float, help="Default tool timeout in milliseconds")
    parser.add_argument("--no-cache", action="store_true", help="Disable the tool result cache")
    parser.add_argument("--quiet", action="store_true", help="Disable step logging on stderr")
    parser.add_argument("--test-mode", action="store_true", help="Skip simulated tool latency")
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> ServerConfig:
    overrides: dict = {}
    if args.max_tool_calls is not None:
        overrides["max_tool_calls"] = args.max_tool_calls
    if args.timeout is not None:
        overrides["default_timeout"] = args.timeout
    if args.no_cache:
        overrides["enable_result_cache"] = False
    if args.quiet:
        overrides["disable_logging"] = True
    if args.test_mode:
        overrides["test_mode"] = True

    base = ServerConfig.from_env()
    return ServerConfig.model_validate({**base.model_dump(), **overrides})


def main(argv: list[str] | None = None) -> None:
    config = build_config(parse_args(argv))
    display = StepDisplay(enabled=not config.disable_logging)
    harness = ThinkingHarness(config, display=display)

    mcp = build_server(harness)
    display.server_started("stdio")
    mcp.run()


if __name__ == "__main__":
    main()
