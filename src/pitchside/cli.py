"""Command line for bulk task operations over file-backed stores.

Subcommands:
    tasks       List a club's tasks with their effective owner.
    candidates  List people who own pending tasks.
    preview     Show which tasks a handover would move.
    execute     Perform a handover.
    audit       Show audit history for a fixture or a task.

Inputs:
- --config  directory holding engine_policy.json
- --tasks   task store JSON file
- --audit   audit log JSONL file
- --roster  roster JSON file ({"people": [...]})

Output is JSON on stdout, logs go to stderr. Exit codes: 0 success,
1 handover finished with per-task errors, 2 invalid request or missing
input, 3 storage unavailable or a corrupt task/audit file.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Optional, Sequence

from pitchside.directory.roster import PersonRoster
from pitchside.errors import StorageUnavailable, TaskEngineError
from pitchside.models.handover import HandoverRequest
from pitchside.models.task import TaskFilter
from pitchside.observability import configure_structlog
from pitchside.persistence.audit_log import AuditLog
from pitchside.persistence.task_store import TaskStore, task_to_dict
from pitchside.policy.resolver import EnginePolicy
from pitchside.service import OpsTaskService

EXIT_OK = 0
EXIT_PARTIAL = 1
EXIT_INVALID = 2
EXIT_STORAGE = 3


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pitchside",
        description="Task ownership and handover operations",
    )
    parser.add_argument("--config", type=Path, default=Path("config"))
    parser.add_argument("--tasks", type=Path, required=True)
    parser.add_argument("--audit", type=Path, required=True)
    parser.add_argument("--roster", type=Path, required=True)
    parser.add_argument(
        "--log-env", default="production",
        help="'production' for JSON logs, 'development' for console logs",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    tasks = sub.add_parser("tasks", help="List tasks")
    tasks.add_argument("--club", required=True)
    tasks.add_argument("--fixture")
    tasks.add_argument("--pack")
    tasks.add_argument("--owner")
    tasks.add_argument("--pending-only", action="store_true")

    candidates = sub.add_parser("candidates", help="List people owning pending tasks")
    candidates.add_argument("--club", required=True)
    candidates.add_argument("--fixture")

    for name, help_text in (("preview", "Preview a handover"), ("execute", "Execute a handover")):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("--club", required=True)
        p.add_argument("--from", dest="from_person", required=True)
        p.add_argument("--scope", choices=["all", "fixture", "pack"], default="all")
        p.add_argument("--fixture")
        p.add_argument("--pack")
        p.add_argument("--target", choices=["person", "role", "backup"], required=True)
        p.add_argument("--to")
        p.add_argument("--to-role")
        if name == "execute":
            p.add_argument("--actor", required=True)

    audit = sub.add_parser("audit", help="Show audit history")
    group = audit.add_mutually_exclusive_group(required=True)
    group.add_argument("--fixture")
    group.add_argument("--task")

    return parser


def _handover_request(args: argparse.Namespace) -> HandoverRequest:
    return HandoverRequest.from_mapping({
        "club_id": args.club,
        "from_person_id": args.from_person,
        "scope": args.scope,
        "fixture_id": args.fixture,
        "template_pack_id": args.pack,
        "target": args.target,
        "to_person_id": args.to,
        "to_role": args.to_role,
    })


def _run(service: OpsTaskService, args: argparse.Namespace) -> tuple[int, Any]:
    if args.command == "tasks":
        tasks = service.list_tasks(TaskFilter(
            club_id=args.club,
            fixture_id=args.fixture,
            template_pack_id=args.pack,
            owner_person_id=args.owner,
            include_completed=not args.pending_only,
        ))
        rows = []
        for task in tasks:
            row = task_to_dict(task)
            row["effective_owner"] = service.effective_owner(task.task_id).kind.value
            rows.append(row)
        return EXIT_OK, rows

    if args.command == "candidates":
        return EXIT_OK, service.list_handover_candidates(args.club, args.fixture)

    if args.command == "preview":
        return EXIT_OK, service.preview_handover(_handover_request(args)).to_dict()

    if args.command == "execute":
        result = service.execute_handover(args.actor, _handover_request(args))
        return (EXIT_OK if result.success else EXIT_PARTIAL), result.to_dict()

    events = service.list_audit_events(fixture_id=args.fixture, task_id=args.task)
    return EXIT_OK, [
        dict(e.to_dict(), summary=AuditLog.describe(e)) for e in events
    ]


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_structlog(environment=args.log_env)

    try:
        policy = EnginePolicy.from_config_dir(args.config)
        roster = PersonRoster.from_file(args.roster)
    except (FileNotFoundError, ValueError, KeyError) as e:
        print(json.dumps({"error": str(e)}), file=sys.stderr)
        return EXIT_INVALID

    try:
        service = OpsTaskService(
            policy,
            roster,
            store=TaskStore(args.tasks),
            audit_log=AuditLog(args.audit),
        )
    except StorageUnavailable as e:
        print(json.dumps({"error": str(e), "kind": type(e).__name__}), file=sys.stderr)
        return EXIT_STORAGE
    except (ValueError, KeyError) as e:
        # Malformed task file, or an audit log that failed its integrity check
        print(json.dumps({"error": str(e), "kind": "CorruptDataFile"}), file=sys.stderr)
        return EXIT_STORAGE

    try:
        code, output = _run(service, args)
    except StorageUnavailable as e:
        print(json.dumps({"error": str(e), "kind": type(e).__name__}), file=sys.stderr)
        return EXIT_STORAGE
    except TaskEngineError as e:
        print(json.dumps({"error": str(e), "kind": type(e).__name__}), file=sys.stderr)
        return EXIT_INVALID

    print(json.dumps(output, indent=2, sort_keys=True))
    return code


if __name__ == "__main__":
    sys.exit(main())
