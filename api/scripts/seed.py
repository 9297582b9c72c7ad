import argparse
import logging
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

from sqlalchemy import text

from survey_insights.database import SessionLocal
from survey_insights.main import run_migrations, wait_for_db


def main() -> None:
    parser = argparse.ArgumentParser(description="Apply schema migrations and seed surveys")
    parser.add_argument("--no-wait", action="store_true", help="fail immediately if the database is down")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    if not args.no_wait:
        wait_for_db()
    applied = run_migrations()

    with SessionLocal() as db:
        counts = {
            table: db.execute(text(f"SELECT COUNT(*) FROM {table}")).scalar_one()
            for table in ("users", "surveys", "questions")
        }

    print("Seed completed")
    print(f"- migrations: {', '.join(applied)}")
    for k, v in counts.items():
        print(f"- {k}: {v}")


if __name__ == "__main__":
    main()
