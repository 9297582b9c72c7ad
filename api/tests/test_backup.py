import json
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from survey_insights.services.backup import (
    BackupOptions,
    backup_timestamp,
    render_sql,
    schema_sql,
    sql_literal,
    validate_tables,
    write_backup,
)

SAMPLE = {
    "surveys": [{"id": 1, "title": "Manager's survey", "is_active": True, "created_at": datetime(2026, 1, 2, 3, 4, 5)}],
    "answers": [],
}


def test_sql_literal_quoting():
    assert sql_literal(None) == "NULL"
    assert sql_literal(True) == "true"
    assert sql_literal(7) == "7"
    assert sql_literal(Decimal("0.85")) == "0.85"
    assert sql_literal("O'Brien") == "'O''Brien'"
    assert sql_literal(datetime(2026, 1, 2, 3, 4, 5)) == "'2026-01-02T03:04:05'"
    assert sql_literal({"a": "it's"}) == """'{"a": "it''s"}'"""


def test_render_sql_without_schema_skips_empty_tables():
    sql = render_sql(SAMPLE, include_schema=False, generated="now")
    assert sql.startswith("-- Database Backup\n-- Generated: now")
    assert "TRUNCATE TABLE surveys CASCADE;" in sql
    assert "INSERT INTO surveys (id, title, is_active, created_at) VALUES (1, 'Manager''s survey', true, '2026-01-02T03:04:05');" in sql
    assert "answers" not in sql
    assert "CREATE TABLE" not in sql


def test_schema_sql_covers_requested_tables():
    ddl = schema_sql(["surveys", "questions"])
    assert "CREATE TABLE surveys" in ddl
    assert "CREATE TABLE questions" in ddl
    assert "CREATE TABLE answers" not in ddl
    assert ddl.index("CREATE TABLE surveys") < ddl.index("CREATE TABLE questions")


def test_unknown_tables_are_rejected():
    assert validate_tables(["users", "answers"]) == ["users", "answers"]
    with pytest.raises(ValueError, match="sessions"):
        validate_tables(["users", "sessions"])


def test_backup_timestamp_is_filename_safe():
    assert backup_timestamp(datetime(2026, 3, 4, 5, 6, 7, tzinfo=timezone.utc)) == "2026-03-04T05-06-07"


def test_write_backup_json_only(tmp_path):
    options = BackupOptions(format="json", output_dir=tmp_path / "out")
    written = write_backup(SAMPLE, options, "2026-03-04T05-06-07")
    assert [p.name for p in written] == [
        "backup-2026-03-04T05-06-07.json",
        "backup-metadata-2026-03-04T05-06-07.json",
    ]
    payload = json.loads(written[0].read_text(encoding="utf-8"))
    assert payload["metadata"]["totalRecords"] == 1
    assert payload["data"]["surveys"][0]["created_at"] == "2026-01-02T03:04:05"

    meta = json.loads(written[1].read_text(encoding="utf-8"))
    assert meta["files"] == ["backup-2026-03-04T05-06-07.json"]
    assert meta["tables"] == [{"name": "surveys", "recordCount": 1}, {"name": "answers", "recordCount": 0}]


def test_write_backup_both_formats(tmp_path):
    written = write_backup(SAMPLE, BackupOptions(output_dir=tmp_path), "ts")
    assert sorted(p.name for p in written) == ["backup-metadata-ts.json", "backup-ts.json", "backup-ts.sql"]
    assert "CREATE TABLE surveys" in (tmp_path / "backup-ts.sql").read_text(encoding="utf-8")


def test_cli_options():
    from scripts.backup_db import parse_args

    options = parse_args(["--sql-only", "--no-schema", "--output", "dumps", "--tables", "surveys, answers"])
    assert options.format == "sql"
    assert options.include_schema is False
    assert str(options.output_dir) == "dumps"
    assert options.tables == ["surveys", "answers"]
    assert parse_args([]).format == "both"
    with pytest.raises(SystemExit):
        parse_args(["--json-only", "--sql-only"])
