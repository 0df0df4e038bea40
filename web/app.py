"""Flask JSON API for the vehicle expense tracker."""

from dataclasses import asdict
from pathlib import Path

from flask import Flask, Response, jsonify, request

# Add parent directory to path for package imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from carbook import (
    NotFoundError,
    StorageError,
    Tracker,
    ValidationError,
    bundle_to_csv,
    export_filename,
    load_config,
)
from carbook.catalog import MAINTENANCE

app = Flask(__name__)
# Set CARBOOK_DATA_DIR / CARBOOK_CONFIG in app.config to point at another store
app.config.setdefault("CARBOOK_DATA_DIR", None)
app.config.setdefault("CARBOOK_CONFIG", None)


def get_tracker() -> Tracker:
    """Open the tracker for the configured data directory."""
    config = load_config(
        app.config["CARBOOK_CONFIG"], data_dir=app.config["CARBOOK_DATA_DIR"]
    )
    return Tracker.open(config)


def error_response(error, status: int):
    body = {"error": str(error)}
    if getattr(error, "committed_id", None) is not None:
        body["committedId"] = error.committed_id
    return jsonify(body), status


@app.errorhandler(NotFoundError)
def handle_not_found(error):
    return error_response(error, 404)


@app.errorhandler(ValidationError)
def handle_validation(error):
    return error_response(error, 400)


@app.errorhandler(StorageError)
def handle_storage(error):
    app.logger.error("Storage failure: %s", error)
    return error_response(error, 500)


def json_body() -> dict:
    """Request body as a JSON object."""
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


def flag(name: str) -> bool:
    return request.args.get(name, "").lower() in ("1", "true", "yes")


# =============================================================================
# Derived values
# =============================================================================


@app.route("/api/dashboard")
def dashboard():
    """Headline figures for the dashboard."""
    return jsonify(asdict(get_tracker().dashboard_summary()))


@app.route("/api/totals/<kind>")
def running_total(kind: str):
    """Running total plus breakdown by source for a savings collection."""
    tracker = get_tracker()
    total = tracker.get_running_total(kind)
    return jsonify(dict(total.to_record(), breakdown=tracker.get_breakdown(kind).to_dict()))


@app.route("/api/goal", methods=["GET"])
def get_goal():
    return jsonify({"amount": get_tracker().get_goal()})


@app.route("/api/goal", methods=["PUT"])
def set_goal():
    tracker = get_tracker()
    tracker.set_goal(json_body().get("amount"))
    return jsonify({"amount": tracker.get_goal()})


@app.route("/api/fuel/efficiency")
def fuel_efficiency():
    """Per-interval efficiency and the overall average."""
    tracker = get_tracker()
    summary = tracker.get_efficiency_summary()
    return jsonify(
        {
            "intervals": [asdict(i) for i in tracker.get_fuel_efficiency()],
            "average": asdict(summary) if summary else None,
        }
    )


@app.route("/api/reminders")
def reminders():
    """Upcoming services, most urgent first."""
    tracker = get_tracker()
    items = [r.to_dict() for r in tracker.get_upcoming_services()]
    status_filter = request.args.get("status", "").lower() or None
    if status_filter:
        items = [r for r in items if r["status"] == status_filter]
    return jsonify({"odometer": tracker.current_odometer, "reminders": items})


@app.route("/api/odometer", methods=["PUT"])
def update_odometer():
    """Manual odometer correction."""
    profile = get_tracker().set_odometer(json_body().get("odometer"))
    return jsonify(profile)


@app.route("/api/maintenance/<record_id>/complete", methods=["POST"])
def complete_maintenance(record_id: str):
    """Mark a maintenance record (or one of its services) complete."""
    body = request.get_json(silent=True) or {}
    updated = get_tracker().mark_complete(
        int(record_id) if record_id.isdigit() else record_id,
        completed_on=body.get("date"),
        odometer=body.get("odometer"),
        next_service=body.get("nextService"),
        service_name=body.get("serviceName"),
    )
    return jsonify(updated)


def number_arg(name: str):
    """Optional numeric query parameter."""
    value = request.args.get(name)
    if value in (None, ""):
        return None
    try:
        return float(value)
    except ValueError:
        raise ValidationError(f"Query parameter {name} must be a number") from None


@app.route("/api/reports/<kind>")
def report(kind: str):
    """Date-range report (?start=&end=, fuel: minPrice/maxPrice, maintenance: supplier/serviceType)."""
    result = get_tracker().get_report(
        kind,
        start=request.args.get("start") or None,
        end=request.args.get("end") or None,
        min_price=number_arg("minPrice"),
        max_price=number_arg("maxPrice"),
        supplier=request.args.get("supplier") or None,
        service_type=request.args.get("serviceType") or None,
    )
    return jsonify(result.to_dict())


@app.route("/api/expenses/orphaned")
def orphaned_expenses():
    return jsonify(get_tracker().find_orphaned_expenses())


# =============================================================================
# Backup
# =============================================================================


@app.route("/api/export")
def export():
    """Download a backup bundle as JSON (default) or CSV."""
    fmt = request.args.get("format", "json").lower()
    if fmt not in ("json", "csv"):
        raise ValidationError(f"Unsupported export format '{fmt}'")
    bundle = get_tracker().export_all()
    disposition = {"Content-Disposition": f"attachment; filename={export_filename(fmt)}"}
    if fmt == "csv":
        return Response(bundle_to_csv(bundle), mimetype="text/csv", headers=disposition)
    response = jsonify(bundle)
    response.headers.update(disposition)
    return response


@app.route("/api/import", methods=["POST"])
def import_bundle():
    """Restore a backup bundle posted as JSON."""
    report = get_tracker().import_all(json_body())
    return jsonify(report.to_dict()), 200 if report.ok else 207


# =============================================================================
# Records
# =============================================================================


@app.route("/api/<collection>", methods=["GET"])
def list_records(collection: str):
    """All records, optionally sorted by an indexed field (?sort=date&order=asc)."""
    order = request.args.get("order", "desc").lower()
    records = get_tracker().list_records(
        collection, order_by=request.args.get("sort") or None, descending=order != "asc"
    )
    return jsonify(records)


@app.route("/api/<collection>", methods=["POST"])
def add_record(collection: str):
    """Create a record; maintenance accepts ?expense=true for a linked expense."""
    tracker = get_tracker()
    record = json_body()
    if collection == MAINTENANCE:
        record_id, expense_id = tracker.add_maintenance(record, create_expense=flag("expense"))
        return jsonify({"id": record_id, "expenseId": expense_id}), 201
    return jsonify({"id": tracker.add_record(collection, record)}), 201


@app.route("/api/<collection>/<key>", methods=["GET"])
def get_record(collection: str, key: str):
    record = get_tracker().get_record(collection, key)
    if record is None:
        raise NotFoundError(f"{collection}: no record with id {key!r}")
    return jsonify(record)


@app.route("/api/<collection>/<key>", methods=["PUT"])
def update_record(collection: str, key: str):
    """Replace a record in full; the id comes from the URL."""
    tracker = get_tracker()
    record_id = tracker.update_record(collection, dict(json_body(), id=key))
    return jsonify(tracker.get_record(collection, record_id))


@app.route("/api/<collection>/<key>", methods=["DELETE"])
def delete_record(collection: str, key: str):
    get_tracker().delete_record(collection, key)
    return "", 204


if __name__ == "__main__":
    # Run with debug mode for development
    # Using 5001 to avoid conflict with macOS AirPlay Receiver on 5000
    app.run(debug=True, host="127.0.0.1", port=5001)
