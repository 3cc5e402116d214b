"""Postgres persistence for campaign configs, created lists and run status.

Tables (names configurable through Settings):
  * segmentations     - one row per scheduled campaign (read only here)
  * created_lists     - one row per list created by a campaign run
  * operation_status  - progress of long-running runs

Every helper takes an optional ``settings``; without one the process-wide
``get_settings()`` is used.
"""

import os
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import psycopg
from psycopg.rows import dict_row
from psycopg.types.json import Json

from hs_campaigns.config.settings import Settings, get_settings
from hs_campaigns.models import CampaignConfig, CampaignFilters, CreatedListRecord
from hs_campaigns.services.filters import build_config_query

JSON_COLUMNS = ("filter_criteria", "campaign_details", "details")


class ListStoreError(Exception):
    pass


def _pg_conn(settings: Optional[Settings] = None):
    settings = settings or get_settings()
    dsn = settings.postgres_url or os.getenv("DATABASE_URL")
    if not dsn:
        raise ListStoreError("POSTGRES_URL is not set for created-list persistence")
    return psycopg.connect(dsn, autocommit=True, connect_timeout=settings.postgres_connect_timeout)


def _adapt(row: Dict[str, Any]) -> List[Any]:
    values: List[Any] = []
    for key, v in row.items():
        if key in JSON_COLUMNS or isinstance(v, (dict, list)):
            v = Json(v)
        values.append(v)
    return values


def _insert(table: str, row: Dict[str, Any], settings: Optional[Settings] = None) -> Dict[str, Any]:
    cols = list(row.keys())
    placeholders = ", ".join(["%s"] * len(cols))
    col_sql = ", ".join(cols)
    sql = f"INSERT INTO {table} ({col_sql}) VALUES ({placeholders}) RETURNING *"
    with _pg_conn(settings) as conn, conn.cursor(row_factory=dict_row) as cur:
        cur.execute(sql, _adapt(row))
        return dict(cur.fetchone() or {})


def _update(
    table: str,
    match: Dict[str, Any],
    fields: Dict[str, Any],
    settings: Optional[Settings] = None,
) -> List[Dict[str, Any]]:
    if not match or not fields:
        return []
    set_sql = ", ".join(f"{c} = %s" for c in fields)
    where_sql = " AND ".join(f"{c} = %s" for c in match)
    sql = f"UPDATE {table} SET {set_sql} WHERE {where_sql} RETURNING *"
    values = _adapt(fields) + list(match.values())
    with _pg_conn(settings) as conn, conn.cursor(row_factory=dict_row) as cur:
        cur.execute(sql, values)
        return [dict(r) for r in cur.fetchall()]


def _select(
    sql: str,
    values: Optional[List[Any]] = None,
    settings: Optional[Settings] = None,
) -> List[Dict[str, Any]]:
    with _pg_conn(settings) as conn, conn.cursor(row_factory=dict_row) as cur:
        cur.execute(sql, values or [])
        return [dict(r) for r in cur.fetchall()]


# --- Campaign configs ---


def fetch_campaign_configs(
    filters: CampaignFilters,
    today: Optional[date] = None,
    *,
    settings: Optional[Settings] = None,
) -> List[CampaignConfig]:
    """Segmentation rows matching the run filters, in run order."""
    settings = settings or get_settings()
    where_sql, values = build_config_query(filters, today)
    rows = _select(
        f"SELECT * FROM {settings.segmentations_table} WHERE {where_sql} ORDER BY sort_order ASC, id ASC",
        values,
        settings,
    )
    return [CampaignConfig.from_row(row) for row in rows]


# --- Created lists ---


def insert_created_list(record: CreatedListRecord, *, settings: Optional[Settings] = None) -> Dict[str, Any]:
    settings = settings or get_settings()
    return _insert(settings.created_lists_table, record.to_row(), settings)


def find_created_list(list_id: int, *, settings: Optional[Settings] = None) -> Optional[Dict[str, Any]]:
    settings = settings or get_settings()
    rows = _select(
        f"SELECT * FROM {settings.created_lists_table} WHERE list_id = %s ORDER BY created_date DESC LIMIT 1",
        [int(list_id)],
        settings,
    )
    return rows[0] if rows else None


def get_created_list(record_id: Any, *, settings: Optional[Settings] = None) -> Optional[Dict[str, Any]]:
    settings = settings or get_settings()
    rows = _select(f"SELECT * FROM {settings.created_lists_table} WHERE id = %s", [record_id], settings)
    return rows[0] if rows else None


def fetch_created_lists(
    include_deleted: bool = False,
    *,
    settings: Optional[Settings] = None,
) -> List[Dict[str, Any]]:
    """Newest first; soft-deleted rows only when ``include_deleted``."""
    settings = settings or get_settings()
    where_sql = "" if include_deleted else "WHERE deleted IS DISTINCT FROM TRUE"
    return _select(
        f"SELECT * FROM {settings.created_lists_table} {where_sql} ORDER BY created_date DESC",
        None,
        settings,
    )


def fetch_created_lists_for_day(
    day: Optional[date] = None,
    *,
    settings: Optional[Settings] = None,
) -> List[Dict[str, Any]]:
    """Rows created during one UTC day (default: today)."""
    settings = settings or get_settings()
    day = day or datetime.now(timezone.utc).date()
    start = datetime(day.year, day.month, day.day, tzinfo=timezone.utc)
    end = start + timedelta(days=1)
    return _select(
        f"SELECT * FROM {settings.created_lists_table} "
        "WHERE created_date >= %s AND created_date < %s ORDER BY created_date DESC",
        [start, end],
        settings,
    )


def update_legacy_list_id(
    list_id: int,
    legacy_list_id: Optional[int],
    *,
    settings: Optional[Settings] = None,
) -> List[Dict[str, Any]]:
    settings = settings or get_settings()
    return _update(
        settings.created_lists_table,
        {"list_id": int(list_id)},
        {"legacy_list_id": legacy_list_id},
        settings,
    )


def mark_created_list_deleted(record_id: Any, *, settings: Optional[Settings] = None) -> List[Dict[str, Any]]:
    settings = settings or get_settings()
    return _update(settings.created_lists_table, {"id": record_id}, {"deleted": True}, settings)


def delete_created_list(record_id: Any, *, settings: Optional[Settings] = None) -> int:
    settings = settings or get_settings()
    with _pg_conn(settings) as conn, conn.cursor() as cur:
        cur.execute(f"DELETE FROM {settings.created_lists_table} WHERE id = %s", [record_id])
        return cur.rowcount


# --- Operation status ---


def insert_operation_status(
    *,
    op_type: str,
    status: str = "running",
    details: Optional[Dict[str, Any]] = None,
    user: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> Dict[str, Any]:
    settings = settings or get_settings()
    return _insert(
        settings.operation_status_table,
        {
            "type": op_type,
            "status": status,
            "start_time": datetime.now(timezone.utc),
            "details": details or {},
            "user_name": user,
        },
        settings,
    )


def update_operation_status(
    op_id: Any,
    *,
    settings: Optional[Settings] = None,
    **fields: Any,
) -> List[Dict[str, Any]]:
    settings = settings or get_settings()
    return _update(settings.operation_status_table, {"id": op_id}, fields, settings)


def get_operation_status(op_id: Any, *, settings: Optional[Settings] = None) -> Optional[Dict[str, Any]]:
    settings = settings or get_settings()
    rows = _select(f"SELECT * FROM {settings.operation_status_table} WHERE id = %s", [op_id], settings)
    return rows[0] if rows else None
