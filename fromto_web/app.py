import json
import logging
import os
from dataclasses import replace
from datetime import date
from decimal import Decimal

from flask import Flask, jsonify, request

from fromto_calc.costs import aggregate_costs, calculate_portfolio_fees, select_active_provider
from fromto_calc.data_models import Provider, TransactionType
from fromto_calc.decimals import ParseError, from_canonical, to_canonical
from fromto_calc.difference import compare, relative_mode, swap
from fromto_calc.engine import plan_purchase
from fromto_calc.main import cost_result_to_dict, difference_to_dict, plan_to_dict, relative_to_dict
from fromto_calc.money import normalize_currency
from fromto_calc.rates import DEFAULT_RATE_API_URL, CurrencyRateService
from fromto_calc.settings import calculation_defaults, load_settings
from fromto_calc.utils import parse_iso_date
from fromto_web.provider_store import ProviderConflictError, create_store_from_env

logger = logging.getLogger(__name__)

app = Flask(__name__)
settings = load_settings(os.environ)
provider_store = create_store_from_env(os.environ.get("FROMTO_DATABASE_URL"))
rate_service = CurrencyRateService(os.environ.get("FROMTO_RATE_API_URL") or DEFAULT_RATE_API_URL)


class ApiError(Exception):
    def __init__(self, message: str, status: int = 400):
        super().__init__(message)
        self.message = message
        self.status = status


@app.errorhandler(ApiError)
def handle_api_error(exc: ApiError):
    return jsonify({"error": exc.message}), exc.status


def _payload() -> dict:
    """Request body as a dict; JSON numbers become ``Decimal``."""
    raw = request.get_data(as_text=True)
    if not raw.strip():
        return {}
    try:
        data = json.loads(raw, parse_float=Decimal)
    except ValueError:
        raise ApiError("Request body must be JSON")
    if not isinstance(data, dict):
        raise ApiError("Request body must be a JSON object")
    return data


def _decimal(data: dict, key: str, default=None, required: bool = False):
    value = data.get(key)
    if value is None or value == "":
        if required:
            raise ApiError(f"Missing field: {key}")
        return default
    if isinstance(value, bool):
        raise ApiError(f"Field {key} must be a decimal")
    if isinstance(value, (Decimal, int)):
        return Decimal(value)
    try:
        return from_canonical(str(value))
    except ParseError:
        raise ApiError(f"Field {key} must be a decimal")


def _date(data: dict, key: str) -> date:
    value = data.get(key)
    if not value:
        return date.today()
    try:
        return parse_iso_date(value)
    except ValueError as exc:
        raise ApiError(str(exc))


def _legacy_minimum(data: dict):
    if "legacy_minimum" not in data:
        return settings.legacy_minimum_cost
    if data["legacy_minimum"] is None or str(data["legacy_minimum"]).lower() == "none":
        return None
    return _decimal(data, "legacy_minimum")


def _request_settings(data: dict):
    overrides = {}
    try:
        for key in ("base_currency", "transaction_currency"):
            if data.get(key):
                overrides[key] = normalize_currency(str(data[key]))
    except ValueError as exc:
        raise ApiError(str(exc))
    for key in ("double_currency", "apply_cost"):
        if key in data:
            overrides[key] = bool(data[key])
    rate = _decimal(data, "currency_rate")
    if rate is not None:
        overrides["currency_rate"] = rate
    return replace(settings, **overrides)


def _get_provider_or_404(provider_id: str) -> Provider:
    provider = provider_store.get_provider(provider_id)
    if provider is None:
        raise ApiError(f"Provider {provider_id} not found", 404)
    return provider


@app.get("/api/defaults")
def defaults():
    values = calculation_defaults(settings)
    return jsonify({
        key: to_canonical(value) if isinstance(value, Decimal) else value
        for key, value in values.items()
    })


@app.post("/api/size")
def size():
    data = _payload()
    request_settings = _request_settings(data)
    on_date = _date(data, "date")
    try:
        transaction_type = TransactionType(data.get("transaction_type", TransactionType.BUY.value))
    except ValueError:
        raise ApiError(f"Unknown transaction type: {data.get('transaction_type')}")

    warnings = []
    provider = None
    if data.get("provider_id"):
        provider = _get_provider_or_404(data["provider_id"])
    elif request_settings.bank_broker_name:
        provider = select_active_provider(
            provider_store.active_providers(on_date), on_date, request_settings.bank_broker_name
        )
        if provider is None:
            warnings.append(
                f"No active provider named {request_settings.bank_broker_name!r}; default costs used"
            )

    actual_units = data.get("actual_units")
    if actual_units is not None and (isinstance(actual_units, bool) or not isinstance(actual_units, int)):
        raise ApiError("Field actual_units must be an integer")

    plan = plan_purchase(
        _decimal(data, "available_amount", required=True),
        _decimal(data, "unit_price", required=True),
        request_settings,
        provider=provider,
        transaction_type=transaction_type,
        legacy_minimum=_legacy_minimum(data),
        actual_units=actual_units,
    )
    plan.warnings[:0] = warnings
    return jsonify(plan_to_dict(plan))


@app.post("/api/difference")
def difference():
    data = _payload()
    start = _decimal(data, "from", required=True)
    end = _decimal(data, "to", required=True)
    if data.get("swap"):
        start, end = swap(start, end)
    mode = data.get("mode", "absolute")
    if mode == "relative":
        return jsonify(relative_to_dict(relative_mode(start, end)))
    if mode != "absolute":
        raise ApiError(f"Unknown mode: {mode}")
    return jsonify(difference_to_dict(compare(start, end)))


@app.get("/api/rate")
def rate():
    from_code = request.args.get("from", settings.base_currency)
    to_code = request.args.get("to", settings.transaction_currency)
    on_date = _date(request.args, "date")
    try:
        value = rate_service.rate_or_fallback(from_code, to_code, on_date, settings.currency_rate)
    except ValueError as exc:
        raise ApiError(str(exc))
    return jsonify({"from": from_code.upper(), "to": to_code.upper(), "date": on_date.isoformat(),
                    "rate": to_canonical(value)})


@app.get("/api/providers")
def list_providers():
    active_on = request.args.get("active_on")
    if active_on:
        providers = provider_store.active_providers(_date(request.args, "active_on"))
    else:
        providers = provider_store.list_providers()
    return jsonify([p.to_dict() for p in providers])


@app.post("/api/providers")
def create_provider():
    data = _payload()
    try:
        provider = Provider.from_dict(_canonical_numbers(data))
    except (ValueError, TypeError) as exc:
        raise ApiError(str(exc))
    try:
        provider_store.save_provider(provider)
    except ProviderConflictError as exc:
        raise ApiError(str(exc), 409)
    body = provider.to_dict()
    body["validation_errors"] = provider.validation_errors
    return jsonify(body), 201


@app.get("/api/providers/<provider_id>")
def get_provider(provider_id: str):
    return jsonify(_get_provider_or_404(provider_id).to_dict())


@app.delete("/api/providers/<provider_id>")
def delete_provider(provider_id: str):
    if not provider_store.remove_provider(provider_id):
        raise ApiError(f"Provider {provider_id} not found", 404)
    return "", 204


@app.post("/api/providers/<provider_id>/costs")
def provider_costs(provider_id: str):
    provider = _get_provider_or_404(provider_id)
    data = _payload()
    amount = _decimal(data, "amount", required=True)
    if data.get("portfolio"):
        result = calculate_portfolio_fees(provider, amount)
    else:
        request_settings = _request_settings(data)
        result = aggregate_costs(
            provider,
            amount,
            request_settings.base_currency,
            request_settings.transaction_currency,
            request_settings.effective_currency_rate,
            legacy_minimum=_legacy_minimum(data),
        )
    return jsonify(cost_result_to_dict(result))


def _canonical_numbers(value):
    """Turn decimals decoded from JSON into canonical strings for ``from_dict``."""
    if isinstance(value, dict):
        return {k: _canonical_numbers(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_canonical_numbers(v) for v in value]
    if isinstance(value, Decimal):
        return to_canonical(value)
    return value


if __name__ == "__main__":
    print("Starting FromTo API...")
    app.run(host="0.0.0.0", port=8710, debug=True)
