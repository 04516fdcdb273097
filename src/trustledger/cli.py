#!/usr/bin/env python3
"""
trustledger CLI — Offline command-line interface to a reputation ledger.

Works directly on a SQLite-backed ledger (no server required). The ledger
file comes from ``--db`` or ``TRUSTLEDGER_DB``; the owner from ``--owner``
or ``TRUSTLEDGER_OWNER``.

Commands:
    init-account         - Initialize an account's reputation record
    register-verifier    - Register a verifier (owner)
    deactivate-verifier  - Deactivate a verifier (owner)
    reactivate-verifier  - Reactivate a verifier (owner)
    submit               - Submit a score as a verifier
    recompute            - Recompute an account's reputation
    dispute              - Raise a dispute
    show                 - Show an account's reputation
    verifier             - Show a verifier record
    advance              - Advance the logical clock
    stats                - Ledger counters
    serve                - Run the HTTP API
"""

import argparse
import json
import sys
from typing import Optional

from trustledger.config import LedgerConfig
from trustledger.errors import LedgerError
from trustledger.ledger import ReputationLedger

STATUS_EMOJI = {"excellent": "🟢", "good": "🔵", "fair": "🟡", "poor": "🔴"}


def _output(data: dict, args: argparse.Namespace, human_fn=None):
    """Output data as JSON or pretty-printed."""
    if getattr(args, "json", False) or human_fn is None:
        print(json.dumps(data, indent=2, default=str))
    else:
        human_fn(data)


def _open_ledger(args: argparse.Namespace) -> ReputationLedger:
    overrides = {}
    if args.db:
        overrides["db_path"] = args.db
    if args.owner:
        overrides["owner"] = args.owner
    config = LedgerConfig.from_env(**overrides)
    if not config.db_path:
        raise ValueError("No ledger file: pass --db or set TRUSTLEDGER_DB")
    return ReputationLedger.from_config(config)


# ─── Commands ──────────────────────────────────────────────────────

def cmd_init_account(ledger: ReputationLedger, args):
    created = ledger.initialize_account(args.account).unwrap()
    result = {"account": args.account, "created": created}

    def human(d):
        if d["created"]:
            print(f"✅ Account initialized: {d['account']}")
        else:
            print(f"ℹ️  Account already exists: {d['account']}")

    _output(result, args, human)
    return result


def cmd_register_verifier(ledger: ReputationLedger, args):
    record = ledger.register_verifier(ledger.owner, args.verifier, args.weight, args.stake).unwrap()
    result = record.to_dict()

    def human(d):
        print(f"✅ Verifier registered: {d['account']}")
        print(f"   Weight: {d['credibility_weight']}")
        print(f"   Stake:  {d['stake_amount']}")

    _output(result, args, human)
    return result


def cmd_set_verifier(ledger: ReputationLedger, args):
    if args.command == "deactivate-verifier":
        record = ledger.deactivate_verifier(ledger.owner, args.verifier).unwrap()
    else:
        record = ledger.reactivate_verifier(ledger.owner, args.verifier).unwrap()
    result = record.to_dict()

    def human(d):
        state = "active" if d["is_active"] else "inactive"
        print(f"✅ Verifier {d['account']} is now {state}")

    _output(result, args, human)
    return result


def cmd_submit(ledger: ReputationLedger, args):
    sequence = ledger.submit_score(
        args.verifier, args.user, args.score, args.confidence, args.category,
    ).unwrap()
    result = {"submission_id": sequence, "user": args.user, "verifier": args.verifier}

    def human(d):
        print(f"✅ Submission #{d['submission_id']} recorded")
        print(f"   Verifier: {d['verifier']}")
        print(f"   User:     {d['user']}")

    _output(result, args, human)
    return result


def cmd_recompute(ledger: ReputationLedger, args):
    outcome = ledger.recompute_reputation(args.user, args.submission_ids).unwrap()
    result = outcome.to_dict()

    def human(d):
        print(f"{STATUS_EMOJI.get(d['status'], '⚪')} {d['user']}: {d['previous_score']} → {d['new_score']} ({d['status']})")
        print(f"   Decayed prior: {d['decayed_score']}")
        print(f"   Batch score:   {d['calculated_score']}")
        print(f"   Resolved:      {d['resolved_count']}")
        if d["skipped_ids"]:
            print(f"   Skipped ids:   {', '.join(str(i) for i in d['skipped_ids'])}")

    _output(result, args, human)
    return result


def cmd_dispute(ledger: ReputationLedger, args):
    dispute_id = ledger.raise_dispute(args.account, args.reason).unwrap()
    result = {"account": args.account, "dispute_id": dispute_id}

    def human(d):
        print(f"✅ Dispute #{d['dispute_id']} raised by {d['account']}")

    _output(result, args, human)
    return result


def cmd_show(ledger: ReputationLedger, args):
    record = ledger.get_reputation(args.account)
    if record is None:
        raise LookupError(f"No reputation record for {args.account}")
    result = record.to_dict()
    result["effective_score"] = ledger.effective_score(args.account)
    result["submissions"] = [s.sequence for s in ledger.list_submissions(args.account)]

    def human(d):
        print(f"{STATUS_EMOJI.get(d['status'], '⚪')} {d['account']}")
        print(f"   Score:          {d['score']} ({d['status']})")
        print(f"   Effective:      {d['effective_score']}")
        print(f"   Interactions:   {d['total_interactions']}")
        print(f"   Last updated:   {d['last_updated']}")
        print(f"   Submissions:    {len(d['submissions'])}")

    _output(result, args, human)
    return result


def cmd_verifier(ledger: ReputationLedger, args):
    record = ledger.get_verifier(args.verifier)
    if record is None:
        raise LookupError(f"{args.verifier} is not a registered verifier")
    result = record.to_dict()

    def human(d):
        print(f"{'✅' if d['is_active'] else '⛔'} {d['account']}")
        print(f"   Weight:        {d['credibility_weight']}")
        print(f"   Stake:         {d['stake_amount']}")
        print(f"   Verifications: {d['total_verifications']}")

    _output(result, args, human)
    return result


def cmd_advance(ledger: ReputationLedger, args):
    result = {"height": ledger.advance(args.blocks)}
    _output(result, args, lambda d: print(f"⏱  Ledger height: {d['height']}"))
    return result


def cmd_stats(ledger: ReputationLedger, args):
    result = ledger.stats().to_dict()

    def human(d):
        print("📊 Ledger statistics")
        print(f"   Owner:        {d['owner']}")
        print(f"   Height:       {d['height']}")
        print(f"   Accounts:     {d['total_users']}")
        print(f"   Verifiers:    {d['total_verifiers']}")
        print(f"   Submissions:  {d['submission_sequence']}")
        print(f"   Disputes:     {d['dispute_sequence']}")

    _output(result, args, human)
    return result


# ─── Parser ────────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="trustledger",
        description="trustledger — verifier-attested reputation ledger CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--json", action="store_true", help="Machine-readable JSON output")
    parser.add_argument("--db", help="SQLite ledger file (default: $TRUSTLEDGER_DB)")
    parser.add_argument("--owner", help="Ledger owner id (default: $TRUSTLEDGER_OWNER)")

    sub = parser.add_subparsers(dest="command", help="Available commands")

    p = sub.add_parser("init-account", help="Initialize an account")
    p.add_argument("account", help="Account ID")

    p = sub.add_parser("register-verifier", help="Register a verifier (as owner)")
    p.add_argument("verifier", help="Verifier account ID")
    p.add_argument("-w", "--weight", type=int, required=True, help="Credibility weight 1-100")
    p.add_argument("-s", "--stake", type=int, required=True, help="Stake amount")

    p = sub.add_parser("deactivate-verifier", help="Deactivate a verifier (as owner)")
    p.add_argument("verifier", help="Verifier account ID")

    p = sub.add_parser("reactivate-verifier", help="Reactivate a verifier (as owner)")
    p.add_argument("verifier", help="Verifier account ID")

    p = sub.add_parser("submit", help="Submit a score as a verifier")
    p.add_argument("verifier", help="Submitting verifier ID")
    p.add_argument("user", help="Subject account ID")
    p.add_argument("score", type=int, help="Score 0-100")
    p.add_argument("-c", "--confidence", type=int, default=100, help="AI confidence 0-100")
    p.add_argument("-t", "--category", default="general", help="Category label")

    p = sub.add_parser("recompute", help="Recompute an account's reputation")
    p.add_argument("user", help="Account ID")
    p.add_argument("submission_ids", type=int, nargs="*", help="Submission ids to fold in")

    p = sub.add_parser("dispute", help="Raise a dispute")
    p.add_argument("account", help="Disputing account ID")
    p.add_argument("reason", help="Reason")

    p = sub.add_parser("show", help="Show an account's reputation")
    p.add_argument("account", help="Account ID")

    p = sub.add_parser("verifier", help="Show a verifier")
    p.add_argument("verifier", help="Verifier account ID")

    p = sub.add_parser("advance", help="Advance the logical clock")
    p.add_argument("blocks", type=int, nargs="?", default=1, help="Heights to advance")

    sub.add_parser("stats", help="Ledger counters")
    sub.add_parser("serve", help="Run the HTTP API (uvicorn)")

    return parser


def main(argv: Optional[list[str]] = None) -> Optional[dict]:
    """CLI entry point. Returns result dict for testing."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    if args.command == "serve":
        from trustledger.api import main as serve
        serve()
        return None

    commands = {
        "init-account": cmd_init_account,
        "register-verifier": cmd_register_verifier,
        "deactivate-verifier": cmd_set_verifier,
        "reactivate-verifier": cmd_set_verifier,
        "submit": cmd_submit,
        "recompute": cmd_recompute,
        "dispute": cmd_dispute,
        "show": cmd_show,
        "verifier": cmd_verifier,
        "advance": cmd_advance,
        "stats": cmd_stats,
    }

    try:
        ledger = _open_ledger(args)
    except ValueError as e:
        print(f"❌ {e}", file=sys.stderr)
        sys.exit(1)

    try:
        return commands[args.command](ledger, args)
    except LedgerError as e:
        print(f"❌ {e.code.value}: {e.message}", file=sys.stderr)
        sys.exit(2)
    except LookupError as e:
        print(f"❌ {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        ledger.close()


if __name__ == "__main__":
    main()
