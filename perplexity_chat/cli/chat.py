"""CLI tooling to run a Perplexity chat completion task locally."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from perplexity_chat.adapters.perplexity.exceptions import ConfigurationError, PerplexityError
from perplexity_chat.config import AppConfig, load_config
from perplexity_chat.core.logging_utils import setup_json_logging
from perplexity_chat.observability.metrics import CounterCollector
from perplexity_chat.tasks.chat_completion import ChatCompletionTask

logger = logging.getLogger(__name__)

__all__ = ["main", "run_chat_cli"]


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments."""
    parser = argparse.ArgumentParser(
        description="Send one chat completion request to Perplexity and print the result",
        allow_abbrev=False,
    )
    parser.add_argument(
        "--task",
        type=Path,
        help="JSON task definition (apiKey, model, messages, temperature, ...).",
    )
    parser.add_argument("--model", help="Model to use; overrides the task and PERPLEXITY_MODEL.")
    parser.add_argument(
        "--message",
        action="append",
        default=[],
        metavar="ROLE:TEXT",
        help="Conversation message, repeatable (e.g. 'user:What is Kestra?').",
    )
    parser.add_argument(
        "--schema-file",
        type=Path,
        help="JSON Schema file requesting structured output.",
    )
    parser.add_argument("--max-tokens", type=int, help="Maximum number of tokens to generate.")
    parser.add_argument("--temperature", type=float, help="Sampling temperature (0 to 2).")
    parser.add_argument(
        "--json-path",
        type=Path,
        help="Write the result JSON to a file instead of stdout.",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Override the configured log level for this session.",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        help="Path to a .env file containing environment variables for the run.",
    )
    return parser.parse_args(argv)


def _parse_message(raw: str) -> dict[str, str]:
    role, sep, text = raw.partition(":")
    if not sep:
        msg = f"Message must look like ROLE:TEXT, got {raw!r}"
        raise ConfigurationError(msg, context={"parameter": "message"})
    return {"type": role.strip(), "content": text.strip()}


def _load_task_file(path: Path) -> dict[str, Any]:
    try:
        definition = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        msg = f"Cannot read task definition {path}: {exc}"
        raise ConfigurationError(msg, context={"parameter": "task"}) from exc
    if not isinstance(definition, dict):
        msg = f"Task definition {path} must be a JSON object"
        raise ConfigurationError(msg, context={"parameter": "task"})
    return definition


def build_task(args: argparse.Namespace, cfg: AppConfig) -> ChatCompletionTask:
    """Merge the task file, CLI flags and configuration into one task.

    CLI flags win over the task file, which wins over the environment.
    """
    definition: dict[str, Any] = _load_task_file(args.task) if args.task else {}

    if args.model:
        definition["model"] = args.model
    if args.message:
        definition["messages"] = [_parse_message(raw) for raw in args.message]
    if args.schema_file:
        try:
            definition["jsonResponseSchema"] = args.schema_file.read_text(encoding="utf-8")
        except OSError as exc:
            msg = f"Cannot read schema file {args.schema_file}: {exc}"
            raise ConfigurationError(msg, context={"parameter": "schema_file"}) from exc
    if args.max_tokens is not None:
        definition["maxTokens"] = args.max_tokens
    if args.temperature is not None:
        definition["temperature"] = args.temperature

    if not (definition.get("apiKey") or definition.get("api_key")):
        definition["apiKey"] = cfg.perplexity.api_key
    if not definition.get("model"):
        definition["model"] = cfg.perplexity.model

    return ChatCompletionTask.from_definition(definition)


async def run_chat_cli(args: argparse.Namespace) -> dict[str, Any]:
    """Execute one chat completion based on parsed CLI arguments."""
    if args.env_file:
        load_dotenv(args.env_file, override=False)
    else:
        load_dotenv(Path.cwd() / ".env", override=False)

    cfg = load_config()
    setup_json_logging(args.log_level or cfg.runtime.log_level)

    task = build_task(args, cfg)
    sink = CounterCollector()
    result = await task.run(
        usage_sink=sink,
        base_url=cfg.perplexity.base_url,
        timeout_sec=cfg.runtime.request_timeout_sec,
        max_response_size_mb=cfg.perplexity.max_response_size_mb,
        debug_payloads=cfg.runtime.debug_payloads,
        log_truncate_length=cfg.runtime.log_truncate_length,
    )
    return {
        "output_text": result.output_text,
        "raw_response": result.raw_response,
        "usage": sink.as_dict(),
    }


def main(argv: list[str] | None = None) -> int:
    """Entry point for ``perplexity-chat`` and ``python -m perplexity_chat.cli.chat``."""
    args = parse_args(argv)
    try:
        output = asyncio.run(run_chat_cli(args))
    except KeyboardInterrupt:  # pragma: no cover - user cancelled
        return 130
    except PerplexityError as exc:
        sys.stderr.write(f"{type(exc).__name__}: {exc}\n")
        return 1

    rendered = json.dumps(output, ensure_ascii=False, indent=2)
    if args.json_path:
        try:
            args.json_path.write_text(rendered + "\n", encoding="utf-8")
        except OSError as exc:
            sys.stderr.write(f"{type(exc).__name__}: Cannot write {args.json_path}: {exc}\n")
            return 1
    else:
        sys.stdout.write(rendered + "\n")
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
