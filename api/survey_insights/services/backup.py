"""Table export to JSON and SQL files plus a metadata summary."""

import json
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.dialects import postgresql
from sqlalchemy.schema import CreateIndex, CreateTable

from ..database import Base
from .. import models

logger = logging.getLogger(__name__)

DEFAULT_TABLES = ["users", "surveys", "questions", "responses", "answers"]
BACKUP_VERSION = "1.0"


@dataclass
class BackupOptions:
    format: str = "both"
    include_schema: bool = True
    output_dir: Path = Path("backups")
    tables: list[str] = field(default_factory=lambda: list(DEFAULT_TABLES))


def backup_timestamp(now: datetime | None = None) -> str:
    return (now or datetime.now(timezone.utc)).strftime("%Y-%m-%dT%H-%M-%S")


def validate_tables(tables: list[str]) -> list[str]:
    unknown = [t for t in tables if t not in models.TABLE_ORDER]
    if unknown:
        raise ValueError(f"Unknown tables: {', '.join(unknown)}")
    return tables


def check_connection(db) -> bool:
    try:
        db.execute(text("SELECT 1 FROM surveys LIMIT 1"))
    except SQLAlchemyError:
        logger.exception("database connection failed")
        return False
    logger.info("database connection successful")
    return True


def fetch_tables(db, tables: list[str]) -> dict[str, list[dict[str, Any]]]:
    data: dict[str, list[dict[str, Any]]] = {}
    for table in validate_tables(tables):
        rows = db.execute(text(f"SELECT * FROM {table} ORDER BY id")).mappings().all()
        data[table] = [dict(r) for r in rows]
        logger.info("backed up %s records from %s", len(data[table]), table)
    return data


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def sql_literal(value: Any) -> str:
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float, Decimal)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return f"'{value.isoformat()}'"
    if isinstance(value, (dict, list)):
        value = json.dumps(value, ensure_ascii=False)
    return "'" + str(value).replace("'", "''") + "'"


def schema_sql(tables: list[str] | None = None) -> str:
    dialect = postgresql.dialect()
    wanted = tables or models.TABLE_ORDER
    parts = []
    for name in models.TABLE_ORDER:
        if name not in wanted:
            continue
        table = Base.metadata.tables[name]
        parts.append(str(CreateTable(table).compile(dialect=dialect)).strip() + ";")
        for index in sorted(table.indexes, key=lambda i: i.name or ""):
            parts.append(str(CreateIndex(index).compile(dialect=dialect)).strip() + ";")
    return "\n\n".join(parts) + "\n"


def render_sql(data: dict[str, list[dict[str, Any]]], *, include_schema: bool, generated: str) -> str:
    out = [f"-- Database Backup\n-- Generated: {generated}\n-- Format: SQL\n"]
    if include_schema:
        out.append("\n-- Schema\n" + schema_sql(list(data)))
    for table, records in data.items():
        if not records:
            continue
        out.append(f"\n-- Data for table: {table}\nTRUNCATE TABLE {table} CASCADE;\n")
        for record in records:
            columns = ", ".join(record)
            values = ", ".join(sql_literal(v) for v in record.values())
            out.append(f"INSERT INTO {table} ({columns}) VALUES ({values});\n")
    return "".join(out)


def total_records(data: dict[str, list[dict[str, Any]]]) -> int:
    return sum(len(rows) for rows in data.values())


def write_backup(data: dict[str, list[dict[str, Any]]], options: BackupOptions, timestamp: str) -> list[Path]:
    output_dir = Path(options.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    generated = datetime.now(timezone.utc).isoformat()
    written: list[Path] = []

    if options.format in ("json", "both"):
        path = output_dir / f"backup-{timestamp}.json"
        payload = {
            "metadata": {
                "timestamp": timestamp,
                "version": BACKUP_VERSION,
                "format": "json",
                "tables": list(data),
                "totalRecords": total_records(data),
            },
            "data": data,
        }
        path.write_text(json.dumps(payload, indent=2, default=_json_default, ensure_ascii=False), encoding="utf-8")
        written.append(path)
        logger.info("JSON backup saved: %s", path.name)

    if options.format in ("sql", "both"):
        path = output_dir / f"backup-{timestamp}.sql"
        path.write_text(render_sql(data, include_schema=options.include_schema, generated=generated), encoding="utf-8")
        written.append(path)
        logger.info("SQL backup saved: %s", path.name)

    meta_path = output_dir / f"backup-metadata-{timestamp}.json"
    metadata = {
        "timestamp": timestamp,
        "date": generated,
        "tables": [{"name": t, "recordCount": len(rows)} for t, rows in data.items()],
        "totalRecords": total_records(data),
        "files": [p.name for p in written],
        "version": BACKUP_VERSION,
    }
    meta_path.write_text(json.dumps(metadata, indent=2), encoding="utf-8")
    written.append(meta_path)
    logger.info("metadata saved: %s", meta_path.name)
    return written
