"""CLI interface for privacy-gate.

Usage:
    # Detect PII types and ranges (stdin: text)
    echo 'mail a@b.com' | privacy-gate detect

    # Sanitize plain text (stdin: text, stdout: JSON result)
    echo 'mail a@b.com' | privacy-gate sanitize

    # Apply a tier's policy to chat messages (stdin: JSON array)
    echo '[{"role":"user","content":"I am a@b.com"}]' | \
        privacy-gate sanitize-messages --tier private > out.json

    # Restore a model reply (stdin: text) with a saved placeholder map
    echo 'Mail [EMAIL_1]' | privacy-gate restore --map map.json

    # Show the route for a tier
    privacy-gate route sovereign

Exit status is 2 when the input was blocked.
"""

from __future__ import annotations
import argparse
import json
import logging
import sys

from .config import DEFAULT_LOG_LEVEL, configure_logging
from .patterns import detect_pii
from .providers import MODELS
from .redactor import sanitize_text
from .router import process_messages_for_privacy, restore_response_pii, route_for
from .types import PrivacyTier

logger = logging.getLogger(__name__)

EXIT_BLOCKED = 2


def cmd_detect(args: argparse.Namespace) -> int:
    """List PII types and ranges found in stdin.  Values are not printed."""
    text = sys.stdin.read()
    output = [
        {
            "type": d.type.value,
            "label": d.type.label,
            "start": d.position.start,
            "end": d.position.end,
        }
        for d in detect_pii(text)
    ]
    _dump(output)
    return 0


def cmd_sanitize(args: argparse.Namespace) -> int:
    """Sanitize plain text on stdin."""
    result = sanitize_text(sys.stdin.read())
    _dump({
        "text": result.sanitized_text if not result.blocked else None,
        "placeholder_map": result.placeholder_map,
        "blocked": result.blocked,
        "blocked_types": [t.value for t in result.blocked_types],
    })
    return EXIT_BLOCKED if result.blocked else 0


def cmd_sanitize_messages(args: argparse.Namespace) -> int:
    """Apply a tier's policy to OpenAI-format messages on stdin."""
    messages = json.loads(sys.stdin.read())
    result = process_messages_for_privacy(args.tier, messages)
    if result.blocked:
        sys.stderr.write(
            "blocked: " + ", ".join(t.label for t in result.blocked_types) + "\n"
        )
        _dump({"blocked": True, "blocked_types": [t.value for t in result.blocked_types]})
        return EXIT_BLOCKED
    _dump({
        "messages": result.messages,
        "placeholder_map": result.placeholder_map,
        "route": result.route.to_dict(),
        "detected_types": [t.value for t in result.detected_types],
        "blocked": False,
    })
    return 0


def cmd_restore(args: argparse.Namespace) -> int:
    """Restore placeholders in stdin using a saved placeholder map."""
    with open(args.map) as f:
        data = json.load(f)
    # Accept either a bare map or the sanitize-messages output
    placeholder_map = data.get("placeholder_map", data)
    sys.stdout.write(restore_response_pii(sys.stdin.read(), placeholder_map))
    return 0


def cmd_route(args: argparse.Namespace) -> int:
    _dump(route_for(args.tier).to_dict())
    return 0


def cmd_models(args: argparse.Namespace) -> int:
    _dump([
        {"id": m.id, "name": m.name, "provider": m.provider.value}
        for m in MODELS.values()
    ])
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    from .server import DEFAULT_PORT, serve
    serve(port=args.port or DEFAULT_PORT)
    return 0


def _dump(data: object) -> None:
    json.dump(data, sys.stdout, ensure_ascii=False)
    sys.stdout.write("\n")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="privacy-gate",
        description="PII gating and privacy-tier routing for LLM chat",
    )
    parser.add_argument("--log-level", default=DEFAULT_LOG_LEVEL, help="Logging level")

    tiers = [t.value for t in PrivacyTier]
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("detect", help="Detect PII types (text stdin)")
    sub.add_parser("sanitize", help="Sanitize plain text (stdin)")
    p = sub.add_parser("sanitize-messages", help="Apply tier policy (JSON stdin)")
    p.add_argument("--tier", choices=tiers, default=PrivacyTier.PRIVATE.value)
    p = sub.add_parser("restore", help="Restore placeholders (text stdin)")
    p.add_argument("--map", required=True, help="JSON file with the placeholder map")
    p = sub.add_parser("route", help="Show the route for a tier")
    p.add_argument("tier", choices=tiers)
    sub.add_parser("models", help="List known models")
    p = sub.add_parser("serve", help="Run the HTTP sidecar")
    p.add_argument("--port", type=int, default=None)

    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    cmds = {
        "detect": cmd_detect,
        "sanitize": cmd_sanitize,
        "sanitize-messages": cmd_sanitize_messages,
        "restore": cmd_restore,
        "route": cmd_route,
        "models": cmd_models,
        "serve": cmd_serve,
    }
    try:
        return cmds[args.command](args)
    except (OSError, ValueError) as e:
        logger.debug("command %s failed", args.command, exc_info=True)
        sys.stderr.write(f"error: {e}\n")
        return 1


if __name__ == "__main__":
    sys.exit(main())
