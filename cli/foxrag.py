"""FoxRAG CLI — validate manifests, run the server, feed it events and ask questions."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

# Ensure project root is importable when running as script
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

DEFAULT_URL = "http://127.0.0.1:8211"


def cmd_validate(args: argparse.Namespace) -> None:
    """Validate a foxrag.yaml manifest."""
    from foxrag.manifest_loader import load_manifest

    path = args.manifest
    try:
        manifest = load_manifest(path)
    except FileNotFoundError:
        print(f"Error: manifest not found: {path}", file=sys.stderr)
        sys.exit(1)
    except Exception as exc:
        print(f"Error: invalid manifest: {exc}", file=sys.stderr)
        sys.exit(1)

    print(f"Manifest OK: {manifest.app.name} v{manifest.app.version}")
    print(f"  Listen:          {manifest.server.host}:{manifest.server.port}")
    print(f"  Chat model:      {manifest.models.default} ({manifest.models.backend})")
    print(f"  Embedding model: {manifest.embedding.model} ({manifest.embedding.backend})")
    print(f"  Vector store:    {manifest.vector_db.backend} / {manifest.vector_db.collection}")
    limit = manifest.vector_db.retrieval_limit
    print(f"  Retrieval limit: {limit if limit is not None else '(all documents)'}")
    print(f"  Queue size:      {manifest.ingest.queue_size}")
    print(f"  Audit path:      {manifest.audit.path}")


def cmd_run(args: argparse.Namespace) -> None:
    """Start the FoxRAG server."""
    import os

    from foxrag.manifest_loader import MANIFEST_ENV, load_manifest
    from contracts.manifest import Manifest

    if args.manifest:
        os.environ[MANIFEST_ENV] = args.manifest
        try:
            manifest = load_manifest(args.manifest)
        except Exception as exc:
            print(f"Error loading manifest: {exc}", file=sys.stderr)
            sys.exit(1)
    else:
        manifest = Manifest()

    host = args.host or manifest.server.host
    port = args.port or manifest.server.port

    print(f"Starting FoxRAG server '{manifest.app.name}'...")
    print(f"  Manifest: {args.manifest or '(defaults)'}")
    print(f"  Host:     {host}")
    print(f"  Port:     {port}")
    print(f"  Model:    {manifest.models.default}")
    print()

    import uvicorn

    uvicorn.run(
        "foxrag.app:app",
        host=host,
        port=port,
        reload=args.reload,
        log_level="info",
    )


def cmd_ingest(args: argparse.Namespace) -> None:
    """Post every non-empty line of the given files to /event."""
    import httpx

    url = f"{args.url.rstrip('/')}/event"
    sent = 0
    try:
        with httpx.Client(timeout=args.timeout) as client:
            for name in args.files:
                path = Path(name)
                if not path.is_file():
                    print(f"Skipping {name}: not a file", file=sys.stderr)
                    continue
                with path.open("r", encoding="utf-8", errors="replace") as f:
                    for line in f:
                        line = line.rstrip("\r\n")
                        if not line.strip():
                            continue
                        resp = client.post(url, content=line.encode("utf-8"))
                        resp.raise_for_status()
                        sent += 1
    except httpx.HTTPError as exc:
        print(f"Error posting to {url} after {sent} events: {exc}", file=sys.stderr)
        sys.exit(1)

    print(f"Queued {sent} events")


def cmd_ask(args: argparse.Namespace) -> None:
    """Send a question to /query and print the answer."""
    import httpx

    url = f"{args.url.rstrip('/')}/query"
    question = " ".join(args.question)
    try:
        resp = httpx.post(url, content=question.encode("utf-8"), timeout=args.timeout)
        resp.raise_for_status()
    except httpx.HTTPError as exc:
        print(f"Error querying FoxRAG at {url}", file=sys.stderr)
        print("Is the server running? (foxrag run)", file=sys.stderr)
        print(f"Details: {exc}", file=sys.stderr)
        sys.exit(1)

    print(resp.text)


def cmd_logs(args: argparse.Namespace) -> None:
    """Query audit logs."""
    from foxrag.audit.query import select
    from contracts.audit import AuditEvent

    log_path = args.log_path

    if not Path(log_path).exists():
        print(f"No audit log found at {log_path}", file=sys.stderr)
        sys.exit(1)

    if args.request_id:
        entries = select(log_path, request_id=args.request_id)
    elif args.event:
        try:
            event = AuditEvent(args.event)
        except ValueError:
            valid = ", ".join(e.value for e in AuditEvent)
            print(f"Unknown event type: {args.event}", file=sys.stderr)
            print(f"Valid events: {valid}", file=sys.stderr)
            sys.exit(1)
        entries = select(log_path, event=event, last=args.limit)
    else:
        entries = select(log_path, last=args.limit)

    if not entries:
        print("No matching audit entries.")
        return

    for entry in entries:
        record = json.loads(entry.model_dump_json())
        if args.json:
            print(json.dumps(record))
        else:
            ts = record["ts"][:19]
            event = record["event"]
            rid = (record["request_id"] or "-")[:8]
            detail = json.dumps(record.get("detail", {}))
            print(f"{ts}  [{event:20s}]  {rid:8s}  {detail}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="foxrag",
        description="FoxRAG — question answering over forensic log lines",
    )
    sub = parser.add_subparsers(dest="command")

    # validate
    p_val = sub.add_parser("validate", help="Validate a foxrag.yaml manifest")
    p_val.add_argument(
        "manifest", nargs="?", default="foxrag.yaml", help="Path to manifest"
    )
    p_val.set_defaults(func=cmd_validate)

    # run
    p_run = sub.add_parser("run", help="Start the FoxRAG server")
    p_run.add_argument(
        "manifest", nargs="?", default=None, help="Path to manifest (defaults if omitted)"
    )
    p_run.add_argument("--host", default=None, help="Bind address")
    p_run.add_argument("--port", type=int, default=None, help="Port")
    p_run.add_argument("--reload", action="store_true", help="Enable auto-reload")
    p_run.set_defaults(func=cmd_run)

    # ingest
    p_ing = sub.add_parser("ingest", help="Post log lines from files to the server")
    p_ing.add_argument("files", nargs="+", help="Text files, one event per line")
    p_ing.add_argument("--url", "-u", default=DEFAULT_URL, help="Server base URL")
    p_ing.add_argument("--timeout", type=float, default=30.0, help="Request timeout")
    p_ing.set_defaults(func=cmd_ingest)

    # ask
    p_ask = sub.add_parser("ask", help="Ask a question about the ingested events")
    p_ask.add_argument("question", nargs="+", help="Question text")
    p_ask.add_argument("--url", "-u", default=DEFAULT_URL, help="Server base URL")
    p_ask.add_argument("--timeout", type=float, default=600.0, help="Request timeout")
    p_ask.set_defaults(func=cmd_ask)

    # logs
    p_logs = sub.add_parser("logs", help="Query audit logs")
    p_logs.add_argument("log_path", help="Path to audit JSONL file")
    p_logs.add_argument("--request-id", "-r", help="Filter by request ID")
    p_logs.add_argument("--event", "-e", help="Filter by event type")
    p_logs.add_argument("--limit", "-n", type=int, default=20, help="Max entries")
    p_logs.add_argument("--json", action="store_true", help="Output raw JSON")
    p_logs.set_defaults(func=cmd_logs)

    return parser


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()
    if not args.command:
        parser.print_help()
        sys.exit(1)

    args.func(args)


if __name__ == "__main__":
    main()
