#!/usr/bin/env python3

import argparse
import argcomplete
import sys

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple
from rich.console import Console
from rich.markup import escape

from .ai import (
    CompletionProvider,
    MalformedSuggestion,
    StructuredSuggestion,
    SuggestionError,
    build_provider,
    suggest_command,
)
from .config import PROVIDERS, ConfigError, RunConfig, build_run_config, config_path, load_config_file
from .context import collect_context, compose_prompt, report_context


@dataclass(frozen=True)
class CliOption:
    """One argparse argument: positional when `flags` holds a bare name."""

    flags: Tuple[str, ...]
    help: str
    settings: Dict[str, Any] = field(default_factory=dict)

    def add_to(self, parser: argparse.ArgumentParser):
        parser.add_argument(*self.flags, help=self.help, **self.settings)


OPTIONS = (
    CliOption(("query",), "What you want to do, in plain English.", {"nargs": "+"}),
    CliOption(
        ("-r", "--raw"),
        "Also print the raw text returned by the AI.",
        {"action": "store_true"},
    ),
    CliOption(
        ("-v", "--verbose"),
        "Print the full response body received from the AI service.",
        {"action": "store_true"},
    ),
    CliOption(
        ("-p", "--provider"),
        "The AI provider to use. Defaults to gemini.",
        {"choices": PROVIDERS},
    ),
    CliOption(
        ("-m", "--model"),
        "The model to use, e.g. 'gemini-2.0-flash' or, with aisuite, 'openai:gpt-4o-mini'.",
    ),
    CliOption(
        ("-t", "--timeout"),
        "Seconds to wait for the AI service before giving up.",
        {"type": float},
    ),
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shpilot",
        description="shpilot suggests shell commands with AI, using context about your current directory.",
    )
    for option in OPTIONS:
        option.add_to(parser)
    return parser


def display_suggestion(suggestion: StructuredSuggestion):
    console = Console()
    console.print(f"[bold green]Command:[/] {escape(suggestion.command)}")
    console.print(f"[bold]Description:[/] {escape(suggestion.description)}")
    console.print(f"[bold]Notes:[/] {escape(suggestion.notes)}")


def display_raw_text(text: str):
    print("→ Raw AI text:")
    print(text)


def run(config: RunConfig, provider: Optional[CompletionProvider] = None) -> StructuredSuggestion:
    """
    Runs one suggestion request end to end and prints the result.

    Raises `SuggestionError` (or `ConfigError`) on failure; turning those into
    an exit code is left to `run_cli`.
    """
    # Resolve the provider (and its credential) before doing anything else.
    if provider is None:
        provider = build_provider(config)

    print(f"→ You typed: {config.query}")
    context = collect_context(config.query)
    report_context(context)
    prompt = compose_prompt(context)

    try:
        suggestion, normalized_text = suggest_command(prompt, provider)
    except MalformedSuggestion as e:
        if config.show_raw:
            display_raw_text(e.text)
        raise

    display_suggestion(suggestion)
    if config.show_raw:
        display_raw_text(normalized_text)
    return suggestion


def run_cli(argv: Optional[List[str]] = None):
    """
    Parses command-line arguments and runs the assistant.

    Args:
        argv: A list of strings representing the command-line arguments.
              If None, `sys.argv[1:]` is used automatically by `parse_args`.
    """
    parser = build_parser()

    # Enable argument auto-completion.
    argcomplete.autocomplete(parser)

    args = parser.parse_args(argv)
    try:
        config = build_run_config(
            query=" ".join(args.query),
            show_raw=args.raw,
            verbose=args.verbose,
            provider=args.provider,
            model=args.model,
            timeout=args.timeout,
            defaults=load_config_file(config_path()),
        )
        run(config)
    except (SuggestionError, ConfigError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


def main():
    """The main entry point for the command-line interface, called by the `shpilot` script."""
    run_cli()


if __name__ == "__main__":
    main()
