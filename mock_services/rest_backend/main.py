"""
In-memory stand-in for the PostgREST-style remote backend.

Supports the subset the client uses: select with ordering and id=eq filters, insert and
update returning the representation. Columns can be hidden per table to mimic an older
schema install.
"""

import uuid
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from fastapi import FastAPI, Header, Request
from fastapi.responses import JSONResponse

COLUMNS = {
    "contracts": (
        "id", "warranty_id", "contract_number", "customer_name", "customer_email", "customer_phone",
        "customer_address", "customer_city", "customer_province", "customer_postal_code",
        "vin", "vehicle_year", "vehicle_make", "vehicle_model", "vehicle_trim", "vehicle_mileage_km",
        "vehicle_body_class", "vehicle_engine", "vehicle_transmission", "dealer_id", "provider_id",
        "product_id", "product_pricing_id", "pricing_term_months", "pricing_term_km",
        "pricing_deductible_cents", "pricing_base_price_cents", "pricing_dealer_cost_cents",
        "addon_total_retail_cents", "addon_total_cost_cents", "created_by_user_id", "created_by_email",
        "sold_by_user_id", "sold_by_email", "sold_at", "remitted_by_user_id", "remitted_by_email",
        "remitted_at", "paid_by_user_id", "paid_by_email", "paid_at", "status", "created_at", "updated_at",
    ),
    "batches": (
        "id", "batch_number", "dealer_id", "status", "payment_status", "contract_ids", "subtotal_cents",
        "tax_rate_pct", "tax_cents", "total_cents", "paid_at", "created_at", "updated_at",
    ),
    "remittances": (
        "id", "remittance_number", "amount_cents", "status", "dealer_id", "provider_id",
        "created_by_user_id", "created_by_email", "created_at", "updated_at",
    ),
}

UNIQUE_COLUMNS = {
    "contracts": "contract_number",
    "batches": "batch_number",
    "remittances": "remittance_number",
}

API_KEY = "test-key"


def _error(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"code": code, "message": message, "details": None})


def create_app(missing_columns: Optional[Dict[str, Iterable[str]]] = None, api_key: str = API_KEY) -> FastAPI:
    app = FastAPI(title="Mock REST Backend", version="1.0.0")
    missing = {table: set(cols) for table, cols in (missing_columns or {}).items()}
    tables: Dict[str, List[dict]] = {name: [] for name in COLUMNS}
    app.state.tables = tables

    def columns(table: str) -> set:
        return set(COLUMNS[table]) - missing.get(table, set())

    def check_request(table: str, key: Optional[str]) -> Optional[JSONResponse]:
        if key != api_key:
            return _error(401, "PGRST301", "Invalid API key")
        if table not in tables:
            return _error(404, "42P01", f'relation "public.{table}" does not exist')
        return None

    def check_columns(table: str, payload: dict) -> Optional[JSONResponse]:
        for name in payload:
            if name not in columns(table):
                return _error(400, "PGRST204", f"Could not find the '{name}' column of '{table}' in the schema cache")
        return None

    def check_unique(table: str, payload: dict, own_id: Optional[str] = None) -> Optional[JSONResponse]:
        column = UNIQUE_COLUMNS[table]
        if column not in payload:
            return None
        for row in tables[table]:
            if row.get(column) == payload[column] and row["id"] != own_id:
                return _error(
                    409,
                    "23505",
                    f'duplicate key value violates unique constraint "{table}_{column}_key"',
                )
        return None

    def id_filter(request: Request) -> Optional[str]:
        value = request.query_params.get("id")
        if value and value.startswith("eq."):
            return value[3:]
        return None

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.get("/rest/v1/{table}")
    def select(table: str, request: Request, apikey: Optional[str] = Header(None)):
        error = check_request(table, apikey)
        if error:
            return error
        rows = tables[table]
        record_id = id_filter(request)
        if record_id is not None:
            rows = [r for r in rows if r["id"] == record_id]
        order = request.query_params.get("order")
        if order:
            column, _, direction = order.partition(".")
            # newest insert first on ties
            rows = sorted(reversed(rows), key=lambda r: r.get(column) or "", reverse=direction == "desc")
        visible = columns(table)
        return [{k: v for k, v in r.items() if k in visible} for r in rows]

    @app.post("/rest/v1/{table}", status_code=201)
    async def insert(table: str, request: Request, apikey: Optional[str] = Header(None)):
        error = check_request(table, apikey)
        if error:
            return error
        payload = await request.json()
        error = check_columns(table, payload) or check_unique(table, payload)
        if error:
            return error

        row = {name: None for name in columns(table)}
        row.update(payload)
        row["id"] = row.get("id") or str(uuid.uuid4())
        row["created_at"] = row.get("created_at") or datetime.now(timezone.utc).isoformat()
        if "updated_at" in row:
            row["updated_at"] = row["updated_at"] or row["created_at"]
        tables[table].append(row)
        return [row]

    @app.patch("/rest/v1/{table}")
    async def update(table: str, request: Request, apikey: Optional[str] = Header(None)):
        error = check_request(table, apikey)
        if error:
            return error
        payload = await request.json()
        record_id = id_filter(request)
        error = check_columns(table, payload) or check_unique(table, payload, own_id=record_id)
        if error:
            return error

        updated = []
        for row in tables[table]:
            if row["id"] == record_id:
                row.update(payload)
                updated.append(row)
        return updated

    return app


app = create_app()
