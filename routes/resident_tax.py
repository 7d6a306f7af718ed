import logging

from flask import Blueprint, current_app, request

from extensions import limiter
from routes.utils import RequestValidator, fail, ok
from services.exceptions import ResidentTaxCsvError
from services.resident_tax_service import import_resident_tax_notices, list_resident_tax_notices

logger = logging.getLogger(__name__)

resident_tax_bp = Blueprint("resident_tax", __name__, url_prefix="/api/resident-tax")


@resident_tax_bp.route("/import", methods=["POST"])
@limiter.limit(lambda: current_app.config.get("CALCULATE_RATE_LIMIT", "30 per minute"))
def import_notices():
    """住民税決定通知 CSV の取込。commit=false (既定) はプレビューのみ。"""
    v = RequestValidator(request.get_json(silent=True))
    csv_text = v.string("csv")
    commit = v.boolean("commit", default=False)
    if v.has_errors:
        return v.response()

    try:
        results = import_resident_tax_notices(csv_text, commit=commit)
    except ResidentTaxCsvError as exc:
        path = ["csv", exc.row] if exc.row is not None else ["csv"]
        v.add(path, str(exc))
        return v.response()
    except Exception:
        logger.exception("Resident tax import failed")
        return fail("Import failed", 500)
    return ok(results)


@resident_tax_bp.route("/notice", methods=["GET"])
def notices():
    v = RequestValidator(request.args.to_dict(), coerce=True)
    employee_id = v.positive_integer("employeeId")
    if v.has_errors:
        return v.response("Invalid query parameter")

    try:
        data = list_resident_tax_notices(employee_id)
    except Exception:
        logger.exception("Resident tax notice lookup failed: employee=%s", employee_id)
        return fail("Failed to load resident tax", 500)
    return ok(data)
