# scripts/backfill_timestamps.py
"""
Rewrite legacy message timestamps in the relational store:
- If the database has no messages table: create it and exit.
- Every timestamp written by an older relay version is rewritten in the
  canonical format, so the table sorts lexically again.
- Timestamps no known format decodes are reported and left untouched; history
  for their topic cannot be served until they are fixed by hand.
Use --dry-run to only report. Exit codes: 0 ok, 1 database error, 2 undecodable rows.
"""

import argparse
import sys

from sqlalchemy import inspect
from sqlalchemy import update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from topicrelay.db import Base
from topicrelay.db import engine as default_engine
from topicrelay.errors import StoreError
from topicrelay.models import MessageRecord
from topicrelay.storage import timestamps


def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Rewrite legacy message timestamps in the canonical format")
    p.add_argument("--dry-run", action="store_true", help="report what would change without writing")
    return p.parse_args(argv)


def plan_rewrites(rows):
    """Split ``(id, timestamp)`` rows into canonical rewrites and undecodable rows."""
    rewrites, undecodable = [], []
    for row_id, value in rows:
        try:
            canonical = timestamps.encode(timestamps.decode(value))
        except StoreError:
            undecodable.append((row_id, value))
            continue
        if canonical != value:
            rewrites.append({"id": row_id, "timestamp": canonical})
    return rewrites, undecodable


def main(argv=None, engine: Engine | None = None) -> int:
    args = parse_args(argv)
    engine = engine if engine is not None else default_engine
    table = MessageRecord.__tablename__

    try:
        if table not in inspect(engine).get_table_names():
            print(f"[backfill] No {table} table found. Creating it...")
            Base.metadata.create_all(bind=engine)
            print("[backfill] Table created, nothing to backfill.")
            return 0

        with Session(engine) as db:
            rows = db.query(MessageRecord.id, MessageRecord.timestamp).order_by(MessageRecord.id).all()
            rewrites, undecodable = plan_rewrites(rows)
            print(
                f"[backfill] Scanned {len(rows)} rows: "
                f"{len(rewrites)} legacy timestamps, {len(undecodable)} undecodable."
            )

            if rewrites and args.dry_run:
                print("[backfill] Dry run, nothing written.")
            elif rewrites:
                db.execute(update(MessageRecord), rewrites)
                db.commit()
                print(f"[backfill] Rewrote {len(rewrites)} timestamps.")
    except SQLAlchemyError as e:
        print(f"[backfill] Database error: {e}", file=sys.stderr)
        return 1

    for row_id, value in undecodable:
        print(f"[backfill] Row {row_id}: cannot decode timestamp {value!r}", file=sys.stderr)
    return 2 if undecodable else 0


if __name__ == "__main__":
    raise SystemExit(main())
