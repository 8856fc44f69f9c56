#!/usr/bin/env python3
"""
evidencegate Command Line Interface

Usage:
    evidencegate methods [--id <method>]
    evidencegate validate --method <id> --step <n> --draft <file> [--attachments <file>]
    evidencegate audit [--details] [--output <file>]
    evidencegate hash --file <file> [--metadata | --source <hash source>]
"""

import argparse
import json
import sys

from .config import LOG_FILE, LOG_LEVEL, default_mode
from .logging_config import configure_logging


def load_json(path: str):
    """Load JSON from file."""
    with open(path, 'r', encoding='utf-8') as f:
        return json.load(f)


def save_json(data: dict, path: str):
    """Save JSON to file."""
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=2)


def cmd_methods(args):
    """List ingestion methods, or show one."""
    from .registry import DEFAULT_REGISTRY

    if args.id:
        config = DEFAULT_REGISTRY.get(args.id)
        if config is None:
            print(f"Unknown method: {args.id}", file=sys.stderr)
            return 1
        d = config.to_dict()
        d["config_hash"] = config.get_hash()
        print(json.dumps(d, indent=2))
        return 0

    for config in DEFAULT_REGISTRY:
        print(f"{config.id:<18} {config.label:<18} {config.description}")
    print(f"\nregistry_hash: {DEFAULT_REGISTRY.get_hash()}")
    return 0


def cmd_validate(args):
    """Validate a draft against one wizard step and report gating."""
    from .validator import can_proceed_to_next_step, can_seal, check_compatibility, validate_step

    draft = load_json(args.draft)
    attachments = load_json(args.attachments) if args.attachments else []
    mode = args.mode or default_mode()

    result = validate_step(args.method, args.step, draft, attachments)
    compat = check_compatibility(args.method, draft)
    out = {
        "method_id": args.method,
        "step": args.step,
        "valid": result.valid,
        "errors": result.errors + [e for e in compat.errors if e not in result.errors],
        "can_proceed": can_proceed_to_next_step(args.method, args.step, draft, attachments),
        "can_seal": can_seal(args.method, draft, mode, attachments),
        "mode": mode,
    }
    print(json.dumps(out, indent=2))

    if result.valid and compat.valid:
        print(f"\n✓ Step {args.step} valid", file=sys.stderr)
        return 0
    print(f"\n✗ Step {args.step} invalid", file=sys.stderr)
    for error in out["errors"]:
        print(f"  - {error}", file=sys.stderr)
    return 1


def cmd_audit(args):
    """Run the registry audit harness."""
    from .audit import run_audit

    report = run_audit()
    d = report.to_dict()
    if not args.details:
        d["results"] = [s.to_dict() for s in report.failures()]

    if args.output:
        save_json(d, args.output)
        print(f"Audit report saved to: {args.output}")
    else:
        print(json.dumps(d["summary"], indent=2))

    for scenario in report.failures():
        for check in scenario.failed_checks():
            print(f"  ✗ {scenario.method} {scenario.evidence_type} {scenario.scope} "
                  f"{scenario.channel} {scenario.mode}: {check.test}", file=sys.stderr)

    return 0 if report.passed() else 1


def cmd_hash(args):
    """Compute evidencegate digests."""
    from .hashing import content_hash, metadata_hash, payload_hash

    data = load_json(args.file)

    if args.metadata:
        print(f"metadata_hash_sha256: {metadata_hash(data)}")
    elif args.source:
        attachments = data.get("attachments", []) if isinstance(data, dict) else []
        try:
            h = payload_hash(args.source, data, attachments)
        except ValueError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        print(f"payload_hash_sha256: {h}")
    else:
        print(f"sha256: {content_hash(data)}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="evidencegate",
        description="Evidence ingestion preflight CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  evidencegate methods
  evidencegate methods --id FILE_UPLOAD
  evidencegate validate -m FILE_UPLOAD -s 2 -d draft.json -a attachments.json
  evidencegate audit --details -o audit_report.json
  evidencegate hash -f payload.json
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # methods
    methods_parser = subparsers.add_parser("methods", help="List ingestion methods")
    methods_parser.add_argument("-i", "--id", help="Show one method config")

    # validate
    validate_parser = subparsers.add_parser("validate", help="Validate a draft step")
    validate_parser.add_argument("-m", "--method", required=True, help="Ingestion method id")
    validate_parser.add_argument("-s", "--step", required=True, type=int, help="Wizard step (1 or 2)")
    validate_parser.add_argument("-d", "--draft", required=True, help="Draft JSON file")
    validate_parser.add_argument("-a", "--attachments", help="Attachments JSON file")
    validate_parser.add_argument("--mode", choices=["simulation", "production"], help="Run mode")

    # audit
    audit_parser = subparsers.add_parser("audit", help="Run the registry audit harness")
    audit_parser.add_argument("--details", action="store_true", help="Include passing scenarios")
    audit_parser.add_argument("-o", "--output", help="Output file for the report")

    # hash
    hash_parser = subparsers.add_parser("hash", help="Compute digests")
    hash_parser.add_argument("-f", "--file", required=True, help="JSON file to hash")
    group = hash_parser.add_mutually_exclusive_group()
    group.add_argument("--metadata", action="store_true", help="Treat the file as a draft; print its metadata digest")
    group.add_argument(
        "--source",
        choices=["canonical_json", "file_bytes", "provided_digest", "api_response_canonical"],
        help="Treat the file as a draft; print its payload digest for this hash source"
    )

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(LOG_LEVEL, json_format=True, log_file=LOG_FILE)

    commands = {
        "methods": cmd_methods,
        "validate": cmd_validate,
        "audit": cmd_audit,
        "hash": cmd_hash,
    }
    if args.command not in commands:
        parser.print_help()
        return 0
    return commands[args.command](args)


if __name__ == "__main__":
    sys.exit(main())
