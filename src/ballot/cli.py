"""Ballot CLI: command-line interface for a single election.

Usage:
    python -m ballot.cli init --authority admin
    python -m ballot.cli register-voter --caller admin --voter alice
    python -m ballot.cli advance --caller admin
    python -m ballot.cli propose --caller alice --description "Build a park"
    python -m ballot.cli vote --caller alice --proposal 0
    python -m ballot.cli winner
    python -m ballot.cli status
    python -m ballot.cli commitment
    python -m ballot.cli anchor

State lives in the data directory: events.jsonl (audit trail) and
state.json (snapshot). The anchor command reads BALLOT_RPC_URL and
BALLOT_PRIVATE_KEY from the environment or a .env file.
"""

from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from ballot.log import configure_logging
from ballot.persistence.event_log import EventLog
from ballot.persistence.state_store import StateStore
from ballot.policy.resolver import PolicyResolver
from ballot.service import BallotService, ServiceResult


DEFAULT_CONFIG = Path(__file__).resolve().parents[2] / "config"
DEFAULT_DATA = Path("data")


def _make_service(config_dir: Path, data_dir: Path) -> BallotService:
    """Create a BallotService with durable persistence."""
    data_dir.mkdir(parents=True, exist_ok=True)
    resolver = PolicyResolver.from_config_dir(config_dir)
    event_log = EventLog(storage_path=data_dir / "events.jsonl")
    state_store = StateStore(storage_path=data_dir / "state.json")
    return BallotService(resolver, event_log=event_log, state_store=state_store)


def _report(result: ServiceResult, message: str) -> int:
    if result.success:
        print(message.format(**result.data))
        if "warning" in result.data:
            print(f"Warning: {result.data['warning']}", file=sys.stderr)
        return 0
    print(f"Failed: {'; '.join(result.errors)}", file=sys.stderr)
    return 1


def cmd_init(args: argparse.Namespace) -> int:
    service = _make_service(args.config, args.data)
    result = service.create_election(args.authority)
    return _report(result, "Created election (authority: {authority}, status: {status})")


def cmd_register_voter(args: argparse.Namespace) -> int:
    service = _make_service(args.config, args.data)
    result = service.register_voter(args.caller, args.voter)
    return _report(result, "Registered voter: {voter} ({voter_count} total)")


def cmd_advance(args: argparse.Namespace) -> int:
    service = _make_service(args.config, args.data)
    result = service.advance_phase(args.caller)
    return _report(result, "Workflow status: {status}")


def cmd_propose(args: argparse.Namespace) -> int:
    service = _make_service(args.config, args.data)
    result = service.register_proposal(args.caller, args.description)
    return _report(result, "Registered proposal: {proposal_id}")


def cmd_vote(args: argparse.Namespace) -> int:
    service = _make_service(args.config, args.data)
    result = service.vote(args.caller, args.proposal)
    return _report(result, "Vote recorded: {voter} -> {proposal_id}")


def cmd_winner(args: argparse.Namespace) -> int:
    service = _make_service(args.config, args.data)
    result = service.get_winner()
    return _report(result, "Winner: {proposal_id} \"{description}\" with {vote_count} vote(s)")


def cmd_status(args: argparse.Namespace) -> int:
    service = _make_service(args.config, args.data)
    print(json.dumps(service.status(), indent=2))
    return 0


def cmd_commitment(args: argparse.Namespace) -> int:
    service = _make_service(args.config, args.data)
    result = service.commitment()
    if result.success:
        print(json.dumps(result.data, indent=2, sort_keys=True))
        return 0
    print(f"Failed: {'; '.join(result.errors)}", file=sys.stderr)
    return 1


def cmd_anchor(args: argparse.Namespace) -> int:
    load_dotenv(args.env_file)
    rpc_url = os.getenv("BALLOT_RPC_URL")
    private_key = os.getenv("BALLOT_PRIVATE_KEY")
    if not rpc_url or not private_key:
        print("Failed: BALLOT_RPC_URL and BALLOT_PRIVATE_KEY must be set", file=sys.stderr)
        return 1

    service = _make_service(args.config, args.data)
    result = service.anchor(rpc_url, private_key)
    return _report(result, "Anchored {commitment_hash} in block {block_number}: {explorer_url}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ballot",
        description="Single-authority ballot controller CLI",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG,
        help="Path to config directory (default: config/)",
    )
    parser.add_argument(
        "--data",
        type=Path,
        default=DEFAULT_DATA,
        help="Path to data directory (default: ./data)",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        help="Diagnostic log level (default: WARNING)",
    )
    sub = parser.add_subparsers(dest="command")

    p_init = sub.add_parser("init", help="Create a new election")
    p_init.add_argument("--authority", required=True, help="Authority identity")

    p_reg = sub.add_parser("register-voter", help="Whitelist a voter (authority)")
    p_reg.add_argument("--caller", required=True, help="Calling identity")
    p_reg.add_argument("--voter", required=True, help="Voter identity")

    p_adv = sub.add_parser("advance", help="Advance the workflow one step (authority)")
    p_adv.add_argument("--caller", required=True, help="Calling identity")

    p_prop = sub.add_parser("propose", help="Register a proposal (voter)")
    p_prop.add_argument("--caller", required=True, help="Calling identity")
    p_prop.add_argument("--description", required=True, help="Proposal description")

    p_vote = sub.add_parser("vote", help="Cast a vote (voter)")
    p_vote.add_argument("--caller", required=True, help="Calling identity")
    p_vote.add_argument("--proposal", required=True, type=int, help="Proposal ID")

    sub.add_parser("winner", help="Show the winning proposal")
    sub.add_parser("status", help="Show election status")
    sub.add_parser("commitment", help="Show the election commitment")

    p_anchor = sub.add_parser("anchor", help="Anchor the commitment on Ethereum")
    p_anchor.add_argument("--env-file", type=Path, default=Path(".env"), help="dotenv file")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    configure_logging(is_development=True, log_level=args.log_level)

    commands = {
        "init": cmd_init,
        "register-voter": cmd_register_voter,
        "advance": cmd_advance,
        "propose": cmd_propose,
        "vote": cmd_vote,
        "winner": cmd_winner,
        "status": cmd_status,
        "commitment": cmd_commitment,
        "anchor": cmd_anchor,
    }

    handler = commands.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return 1

    try:
        return handler(args)
    except ValueError as e:
        # Corrupt or tampered data files
        print(f"Failed: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
