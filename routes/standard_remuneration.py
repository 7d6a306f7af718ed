import logging

from flask import Blueprint, request

from routes.utils import RequestValidator, fail, ok
from services.exceptions import EmployeeNotFoundError
from services.standard_remuneration_service import build_standard_remuneration_report

logger = logging.getLogger(__name__)

standard_remuneration_bp = Blueprint(
    "standard_remuneration", __name__, url_prefix="/api/standard-remuneration",
)


@standard_remuneration_bp.route("/evaluate", methods=["POST"])
def evaluate():
    v = RequestValidator(request.get_json(silent=True))
    employee_id = v.positive_integer("employeeId")
    reference_date = v.date("referenceDate")
    if v.has_errors:
        return v.response()

    try:
        report = build_standard_remuneration_report(employee_id, reference_date)
    except EmployeeNotFoundError as exc:
        return fail(str(exc), 404)
    except Exception:
        logger.exception("Standard remuneration evaluation failed: employee=%s", employee_id)
        return fail("Failed to evaluate standard remuneration", 500)
    return ok(report)
