"""Flask REST API exposing the budgeting engine and the offline asset cache."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

from flask import Flask, Response, jsonify, request
from flask_cors import CORS

from budget_core.backup import backup_filename, export_backup, parse_backup, restore_backup
from budget_core.calculations import coffee_equivalent, cost_per_use, meal_equivalent
from budget_core.config import AppConfig
from budget_core.exceptions import (
    BackupFormatError,
    ConfirmationRequiredError,
    DecryptionError,
    PersistenceError,
    RecordNotFoundError,
    ValidationError,
)
from budget_core.services import Clock, LedgerEngine, feedback_for
from budget_core.storage import JSONStorage
from budget_core.validators import parse_amount, parse_uses
from offline_cache import AssetRequest, CacheController, build_controller
from offline_cache.exceptions import LifecycleError, OfflineError


def create_app(
    data_dir: Optional[Path] = None,
    cache_controller: Optional[CacheController] = None,
    clock: Optional[Clock] = None,
    config: Optional[AppConfig] = None,
) -> Flask:
    app = Flask(__name__)
    config = config or AppConfig.from_env()

    if config.is_development:
        CORS(app, resources={r"/*": {"origins": "*"}}, supports_credentials=True)
    elif config.allowed_origins:
        CORS(app, resources={r"/*": {"origins": config.allowed_origins}}, supports_credentials=True)
    else:
        CORS(app)

    engine = LedgerEngine(JSONStorage(Path(data_dir or config.data_dir)), clock=clock)
    cache = cache_controller or build_controller(config)

    def _success(payload: Any, status: int = 200):
        if status == 204:
            return ("", status)
        return jsonify(payload), status

    def _handle_error(exc: Exception, status: int, message: str, **extra: Any):
        app.logger.error("%s: %s", message, exc)
        return jsonify({"error": message, "details": str(exc), **extra}), status

    @app.errorhandler(ValidationError)
    def handle_validation_error(exc: ValidationError):
        return _handle_error(exc, 400, "Validation error")

    @app.errorhandler(RecordNotFoundError)
    def handle_not_found(exc: RecordNotFoundError):
        return _handle_error(exc, 404, "Record not found")

    @app.errorhandler(ConfirmationRequiredError)
    def handle_confirmation_required(exc: ConfirmationRequiredError):
        return _handle_error(exc, 409, "Confirmation required", reasons=list(exc.reasons))

    @app.errorhandler(DecryptionError)
    def handle_decryption_error(exc: DecryptionError):
        return _handle_error(exc, 400, "Decryption failed")

    @app.errorhandler(BackupFormatError)
    def handle_format_error(exc: BackupFormatError):
        return _handle_error(exc, 400, "Invalid file format")

    @app.errorhandler(PersistenceError)
    def handle_persistence_error(exc: PersistenceError):
        return _handle_error(exc, 500, "Persistence error")

    @app.errorhandler(OfflineError)
    def handle_offline(exc: OfflineError):
        return _handle_error(exc, 504, "Offline")

    @app.errorhandler(LifecycleError)
    def handle_lifecycle(exc: LifecycleError):
        return _handle_error(exc, 503, "Offline cache not active")

    def _json_body() -> Dict[str, Any]:
        if not request.is_json:
            raise ValidationError("Request content must be application/json")
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise ValidationError("Malformed JSON body")
        return data

    def _flag(payload: Dict[str, Any], name: str) -> bool:
        value = payload.get(name, False)
        if not isinstance(value, bool):
            raise ValidationError(f"{name} must be true or false")
        return value

    def _expense_payload(expense) -> Dict[str, Any]:
        payload = expense.to_dict()
        feedback = feedback_for(expense)
        payload["feedback"] = feedback.value if feedback else None
        return payload

    @app.get("/budget")
    def get_budget():
        return _success({"budget": f"{engine.session.budget:.2f}"})

    @app.put("/budget")
    def set_budget():
        payload = _json_body()
        budget = engine.set_budget(payload.get("amount"))
        return _success({"budget": f"{budget:.2f}", "mood": "proud"})

    @app.get("/expenses")
    def list_expenses():
        month = request.args.get("month") or None
        expenses = engine.list_expenses(month)
        total = engine.monthly_spending(month)
        return _success({
            "items": [expense.to_dict() for expense in expenses],
            "total": f"{total:.2f}",
        })

    @app.post("/expenses")
    def create_expense():
        payload = _json_body()
        expense = engine.add_expense(
            payload.get("amount"),
            payload.get("category"),
            payload.get("description"),
            _flag(payload, "is_want"),
            confirmed=_flag(payload, "confirmed"),
        )
        return _success(_expense_payload(expense), 201)

    @app.get("/expenses/<int:expense_id>")
    def get_expense(expense_id: int):
        return _success(engine.get_expense(expense_id).to_dict())

    @app.delete("/expenses/<int:expense_id>")
    def delete_expense(expense_id: int):
        engine.delete_expense(expense_id)
        return _success({}, 204)

    @app.get("/parking")
    def list_parking():
        now = engine.now()
        items = []
        for item in engine.list_parked():
            data = item.to_dict()
            data["daysLeft"] = item.days_left(now)
            items.append(data)
        return _success({"items": items})

    @app.post("/parking")
    def create_parked_item():
        payload = _json_body()
        item = engine.park_item(
            payload.get("amount"), payload.get("category"), payload.get("description")
        )
        return _success(item.to_dict(), 201)

    @app.post("/parking/<int:item_id>/convert")
    def convert_parked_item(item_id: int):
        expense = engine.convert_parked_to_expense(item_id)
        if expense is None:
            return _success({}, 204)
        return _success(_expense_payload(expense), 201)

    @app.delete("/parking/<int:item_id>")
    def delete_parked_item(item_id: int):
        engine.delete_parked_item(item_id)
        return _success({}, 204)

    @app.get("/dashboard")
    def dashboard():
        return _success(engine.dashboard().to_dict())

    @app.get("/reports/categories")
    def category_report():
        totals = engine.spending_by_category(request.args.get("month") or None)
        return _success({category: f"{total:.2f}" for category, total in totals.items()})

    @app.get("/reports/trend")
    def trend_report():
        months = request.args.get("months", default=6, type=int)
        if months is None or not 1 <= months <= 24:
            raise ValidationError("months must be between 1 and 24")
        return _success({
            "items": [
                {"month": month, "total": f"{total:.2f}"}
                for month, total in engine.monthly_trend(months)
            ]
        })

    @app.get("/cost-per-use")
    def cost_per_use_report():
        amount = parse_amount(request.args.get("amount"), "amount")
        per_use = cost_per_use(amount, parse_uses(request.args.get("uses", "1")))
        return _success({
            "cost_per_use": f"{per_use:.2f}",
            "coffees": coffee_equivalent(per_use),
            "meal_days": meal_equivalent(amount),
        })

    @app.post("/backup/export")
    def backup_export():
        payload = request.get_json(silent=True) or {}
        content = export_backup(engine, payload.get("passphrase"))
        response = Response(content, mimetype="application/json")
        response.headers["Content-Disposition"] = (
            f"attachment; filename={backup_filename(engine.now())}"
        )
        return response

    @app.post("/backup/import")
    def backup_import():
        payload = _json_body()
        content = payload.get("content")
        if not isinstance(content, str):
            raise ValidationError("content must be the backup file text")
        document = parse_backup(content, payload.get("passphrase"))
        if not _flag(payload, "confirm"):
            raise ConfirmationRequiredError(["replace_all_data"])
        restore_backup(engine, document)
        return _success({
            "expenses": len(document.expenses),
            "parking": len(document.parking),
            "settings": len(document.settings),
        })

    @app.delete("/data")
    def clear_data():
        if request.args.get("confirm") != "true":
            raise ConfirmationRequiredError(["delete_all_data"])
        engine.clear_all()
        return _success({}, 204)

    @app.get("/offline/")
    @app.get("/offline/<path:asset>")
    def offline_asset(asset: str = ""):
        asset_request = AssetRequest(
            url="/" + asset, accept=request.headers.get("Accept", "*/*")
        )
        response = cache.fetch(asset_request)
        return Response(response.body, status=response.status, headers=response.headers)

    app.config["LEDGER_ENGINE"] = engine
    app.config["CACHE_CONTROLLER"] = cache
    return app
