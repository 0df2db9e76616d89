"""Command line entry point: run the server and maintenance tasks."""
import argparse
import json
import logging
from pathlib import Path

import uvicorn
from pydantic import ValidationError

from examprep.config import LOG_LEVEL
from examprep.database import SessionLocal, init_db
from examprep.logging_setup import setup_console_logging
from examprep.models import TestCreate
from examprep.services import content_service
from examprep.services.cleanup_service import run_maintenance

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Exam prep platform")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the API server")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)

    subparsers.add_parser("init-db", help="Create database tables")

    import_test = subparsers.add_parser("import-test", help="Import a test from JSON")
    import_test.add_argument("file", type=Path, help="Path to test JSON file")

    subparsers.add_parser("sweep", help="Submit timed-out attempts once")
    return parser.parse_args(argv)


def _import_test(path: Path) -> int:
    try:
        payload = TestCreate.model_validate(json.loads(path.read_text(encoding="utf-8")))
    except (OSError, json.JSONDecodeError, ValidationError) as exc:
        logger.error("Cannot import %s: %s", path, exc)
        return 1

    db = SessionLocal()
    try:
        test = content_service.import_test(db, payload)
    finally:
        db.close()
    print(f"Imported test {test.id} ({test.question_count} questions)")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    setup_console_logging(LOG_LEVEL)

    if args.command == "serve":
        uvicorn.run(
            "examprep.app:app",
            host=args.host,
            port=args.port,
            log_level="info",
        )
        return 0

    init_db()
    if args.command == "import-test":
        return _import_test(args.file)
    if args.command == "sweep":
        expired = run_maintenance()
        print(f"Submitted {expired} timed-out attempts")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
