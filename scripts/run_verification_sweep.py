"""Run one automatic domain verification sweep in-process (no Celery)"""
import argparse
import json
from datetime import datetime, timezone
from app.db.session import SessionLocal
from app.logging_config import setup_logging
from app.services.verification_sweep import run_verification_sweep



if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Check every pending domain verification once")
    parser.add_argument("--workers", type=int, default=None, help="Concurrent checks (default: settings)")
    args = parser.parse_args()

    setup_logging()
    summary = run_verification_sweep(
        SessionLocal, now=datetime.now(timezone.utc), max_workers=args.workers
    )
    print(json.dumps(summary.as_dict(), indent=2))
