from __future__ import annotations

import argparse
import json
import sys
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from noconflict.audit import configure_audit_logger
from noconflict.cluster import ClusterSnapshot
from noconflict.config import configure_logging, get_settings, load_policies
from noconflict.driver import check_snapshot
from noconflict.exceptions import NoConflictError
from noconflict.matcher import validate_conflicts_with


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="noconflict",
        description="On-demand worker retention with mutual exclusion.",
    )
    parser.add_argument("--log-level", help="Logging level (default from NOCONFLICT_LOG_LEVEL).")
    sub = parser.add_subparsers(dest="command", required=True)

    validate = sub.add_parser("validate", help="Validate a conflicts_with pattern.")
    validate.add_argument("pattern", help="Regex matched against other worker names.")

    check = sub.add_parser(
        "check", help="Run one retention check per worker of a JSON cluster snapshot."
    )
    check.add_argument("--input", help="Snapshot file (default: stdin).")
    check.add_argument(
        "--policies",
        help="Policy file replacing the snapshot's policies "
        "(default: NOCONFLICT_POLICIES_PATH when set).",
    )
    check.add_argument("--now", type=float, help="Override the snapshot clock (Unix seconds).")
    check.add_argument(
        "--worker", action="append", help="Only check this worker (repeatable)."
    )

    serve = sub.add_parser("serve", help="Run the HTTP API.")
    serve.add_argument("--host", help="Bind address (default: NOCONFLICT_HOST).")
    serve.add_argument("--port", type=int, help="Port (default: NOCONFLICT_PORT).")
    return parser.parse_args(argv)


def _read_snapshot(path: Optional[str]) -> Dict[str, Any]:
    if path:
        with open(path, "r", encoding="utf-8") as handle:
            raw = handle.read()
    else:
        raw = sys.stdin.read()
    if not raw.strip():
        raise ValueError("empty snapshot; provide JSON on stdin or use --input.")
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError("snapshot JSON must be an object.")
    return data


def _cmd_validate(args: argparse.Namespace) -> int:
    result = validate_conflicts_with(args.pattern)
    if result.ok:
        print("ok")
        return 0
    print(result.message, file=sys.stderr)
    return 1


def _cmd_check(args: argparse.Namespace) -> int:
    settings = get_settings()
    snapshot = ClusterSnapshot.model_validate(_read_snapshot(args.input))

    update: Dict[str, Any] = {}
    if args.now is not None:
        update["now"] = args.now
    policies_path = args.policies or settings.policies_path
    if policies_path:
        update["policies"] = load_policies(policies_path)
    if update:
        snapshot = snapshot.model_copy(update=update)

    audit = None
    if settings.audit_log_path:
        audit = configure_audit_logger(output_path=settings.audit_log_path)
    result = check_snapshot(snapshot, args.worker, forward_to=audit)
    if audit is not None:
        audit.close()

    print(json.dumps(result, indent=2))
    return 0


def _cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "noconflict.server:app",
        host=args.host or settings.host,
        port=args.port or settings.port,
    )
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    configure_logging(args.log_level)
    try:
        if args.command == "validate":
            return _cmd_validate(args)
        if args.command == "serve":
            return _cmd_serve(args)
        return _cmd_check(args)
    except NoConflictError as exc:
        print(json.dumps(exc.to_dict()), file=sys.stderr)
        return 2
    except ValidationError as exc:
        print(f"Invalid snapshot: {exc}", file=sys.stderr)
        return 2
    except (OSError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
