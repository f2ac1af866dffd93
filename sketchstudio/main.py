"""Entry point: parses CLI flags, wires cancellation, runs the studio."""

import argparse
import os
import signal
import sys
from pathlib import Path

from sketchstudio.config import get_config, load_config
from sketchstudio.errors import Cancelled, ContourCompileError, StudioError, TurnError
from sketchstudio.studio import Studio
from sketchstudio.utils.cancel import CancelToken
from sketchstudio.utils.langspec import load_lang_spec
from sketchstudio.utils.validator import validate_config

KEY_ENV = {"anthropic": "ANTHROPIC_API_KEY", "google": "GOOGLE_API_KEY"}

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CANCELLED = 130

RAW_PREVIEW_CHARS = 2000


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sketch-studio",
        description="Generate SketchLang drawings from a text description.",
    )
    source = parser.add_mutually_exclusive_group()
    source.add_argument("-d", "--description", help="Sketch description")
    source.add_argument("-f", "--file", help="Read the description from a file")
    parser.add_argument("--config", help="YAML file overriding the packaged config")
    parser.add_argument("--compiler", help="Path to the SketchLang compiler executable")
    parser.add_argument("--output", help="Output directory")
    parser.add_argument("--key", help="API key (defaults to the provider's environment variable)")
    parser.add_argument("--provider", choices=["anthropic", "google", "local"])
    parser.add_argument("--model", help="Model name")
    parser.add_argument("--mode", choices=["sections", "single"])
    parser.add_argument("--workers", type=int, help="Concurrent section expansions")
    parser.add_argument("--lang", help="Path to a SketchLang reference to use in prompts")
    parser.add_argument("--from", dest="request_from", default="", help="Who requested the sketch")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug output and raw response files")
    return parser


def read_description(args) -> str:
    if args.file:
        return Path(args.file).expanduser().read_text(encoding="utf-8")
    if args.description is not None:
        return args.description
    print("Enter your sketch description (Ctrl+D / Ctrl+Z to submit):", file=sys.stderr)
    return sys.stdin.read()


def resolve_config(args) -> dict:
    """Copy the file config and layer CLI overrides on top."""
    config = dict(load_config(args.config) if args.config else get_config())
    overrides = {
        "compiler_path": args.compiler,
        "output_dir": args.output,
        "provider": args.provider,
        "model": args.model,
        "mode": args.mode,
        "expand_workers": args.workers,
    }
    config.update({key: value for key, value in overrides.items() if value is not None})
    if args.provider == "local" and args.model:
        config["local_model"] = args.model
    if args.verbose:
        config["verbose"] = True
    return validate_config(config)


def resolve_api_key(config: dict, key: str | None) -> str | None:
    provider = config.get("provider", "anthropic")
    if provider not in KEY_ENV:
        return None
    key = key or os.environ.get(KEY_ENV[provider])
    if not key:
        raise ValueError(f"API key required. Use --key or set {KEY_ENV[provider]}.")
    return key


def install_signal_handlers(cancel: CancelToken) -> None:
    def _handler(signum, frame):
        print("\n[studio] Interrupt received, cancelling...", file=sys.stderr)
        cancel.cancel()

    signal.signal(signal.SIGINT, _handler)
    if hasattr(signal, "SIGTERM"):
        signal.signal(signal.SIGTERM, _handler)


def run(args) -> int:
    """Run one generation and map the outcome to a process exit code."""
    cancel = CancelToken()
    try:
        config = resolve_config(args)
        api_key = resolve_api_key(config, args.key)
        description = read_description(args)
        lang_spec = load_lang_spec(args.lang)

        install_signal_handlers(cancel)
        studio = Studio(config, lang_spec=lang_spec, cancel=cancel, api_key=api_key)
        result = studio.generate(description, request_from=args.request_from)
    except Cancelled:
        print("[studio] Cancelled.", file=sys.stderr)
        return EXIT_CANCELLED
    except ContourCompileError as exc:
        print(f"[studio] Error: {exc}", file=sys.stderr)
        if exc.source_path:
            print(f"[studio] Contour source kept at: {exc.source_path}", file=sys.stderr)
        return EXIT_FAILURE
    except TurnError as exc:
        print(f"[studio] Error: {exc}", file=sys.stderr)
        for line in exc.diagnostics:
            print(f"[studio]   - {line}", file=sys.stderr)
        if exc.raw_response:
            raw = exc.raw_response
            if len(raw) > RAW_PREVIEW_CHARS:
                raw = raw[:RAW_PREVIEW_CHARS] + f"\n... ({len(exc.raw_response) - RAW_PREVIEW_CHARS} more chars)"
            print(f"[studio] Last response:\n{raw}", file=sys.stderr)
        return EXIT_FAILURE
    except (StudioError, ValueError, OSError) as exc:
        print(f"[studio] Error: {exc}", file=sys.stderr)
        return EXIT_FAILURE

    print(f"[studio] Status: {result.status}")
    for title, decision in result.report.items():
        print(f"[studio]   {title}: {decision}")
    print(f"[studio] Output written to: {result.sketch_dir}")
    return EXIT_OK


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    args = build_parser().parse_args(argv)
    sys.exit(run(args))


if __name__ == "__main__":
    main()
