"""Table definitions and schema migrations for sessions, stores, promotions, kiosks, auth records and tenants."""

from __future__ import annotations

from .schema import Column, ColumnType, Migration, Table


def _col(name: str, type_: ColumnType, *, primary_key: bool = False) -> Column:
    return Column(name, type_, primary_key=primary_key)


_S, _T, _J = ColumnType.STRING, ColumnType.TEXT, ColumnType.JSON
_DT, _BO = ColumnType.DATE_TIME, ColumnType.BOOLEAN

SESSION = Table(
    "Session",
    (
        _col("id", _S, primary_key=True),
        _col("tenant_id", _S),
        _col("key", _T),
        _col("employee_id", _T),
        _col("expiry", _DT),
        _col("variant", _J),
    ),
)

STORE = Table(
    "Store",
    (
        _col("tenant_id", _S),
        _col("id", _S, primary_key=True),
        _col("name", _T),
        _col("contact", _J),
        _col("code", _T),
        _col("created_at", _DT),
        _col("updated_at", _DT),
    ),
)

PROMOTION = Table(
    "Promotion",
    (
        _col("id", _S, primary_key=True),
        _col("tenant_id", _S),
        _col("name", _T),
        _col("buy", _J),
        _col("get", _J),
        _col("valid_till", _DT),
        _col("timestamp", _DT),
    ),
)

KIOSK = Table(
    "Kiosk",
    (
        _col("tenant_id", _S),
        _col("id", _S, primary_key=True),
        _col("name", _T),
        _col("store_id", _S),
        _col("preferences", _J),
        _col("disabled", _BO),
        _col("last_online", _DT),
    ),
)

AUTH_RECORD = Table(
    "AuthRecord",
    (
        _col("id", _S, primary_key=True),
        _col("tenant_id", _S),
        _col("kiosk_id", _T),
        _col("attempt", _J),
        _col("timestamp", _DT),
    ),
)

TENANTS = Table(
    "Tenants",
    (
        _col("tenant_id", _S, primary_key=True),
        _col("registration_date", _DT),
        _col("settings", _J),
        _col("created_at", _DT),
        _col("updated_at", _DT),
    ),
)

SESSION_MIGRATION = Migration("m20230730_000006_session", SESSION)
STORE_MIGRATION = Migration("m20230730_000007_store", STORE)
PROMOTION_MIGRATION = Migration("m20230730_000008_promotion", PROMOTION)
KIOSK_MIGRATION = Migration("m20230730_000009_kiosk", KIOSK)
AUTH_RECORD_MIGRATION = Migration("m20230730_000010_authrec", AUTH_RECORD)
TENANTS_MIGRATION = Migration("m20230730_000011_tenants", TENANTS)