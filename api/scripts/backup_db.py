import argparse
import logging
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

from sqlalchemy.exc import SQLAlchemyError

from survey_insights.database import SessionLocal
from survey_insights.services.backup import (
    DEFAULT_TABLES,
    BackupOptions,
    backup_timestamp,
    check_connection,
    fetch_tables,
    write_backup,
)


def parse_args(argv: list[str] | None = None) -> BackupOptions:
    parser = argparse.ArgumentParser(description="Back up survey tables to JSON and SQL files")
    fmt = parser.add_mutually_exclusive_group()
    fmt.add_argument("--json-only", action="store_true")
    fmt.add_argument("--sql-only", action="store_true")
    parser.add_argument("--no-schema", action="store_true")
    parser.add_argument("--output", type=str, default="backups")
    parser.add_argument("--tables", type=str, default=",".join(DEFAULT_TABLES))
    args = parser.parse_args(argv)

    return BackupOptions(
        format="json" if args.json_only else "sql" if args.sql_only else "both",
        include_schema=not args.no_schema,
        output_dir=Path(args.output),
        tables=[t.strip() for t in args.tables.split(",") if t.strip()],
    )


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    options = parse_args(argv)
    timestamp = backup_timestamp()
    print(f"Database backup {timestamp}")

    with SessionLocal() as db:
        if not check_connection(db):
            print("Backup failed: database connection failed")
            return 1
        try:
            data = fetch_tables(db, options.tables)
            files = write_backup(data, options, timestamp)
        except (SQLAlchemyError, OSError, ValueError) as exc:
            print(f"Backup failed: {exc}")
            return 1

    print("Backup completed")
    print(f"- directory: {options.output_dir}")
    for path in files:
        print(f"- {path.name}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
