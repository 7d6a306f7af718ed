import logging

from flask import Blueprint, request

from models.tax import INCOME_TAX_TABLE_TYPES
from routes.utils import RequestValidator, fail, ok
from services.tax_service import list_tax_brackets

logger = logging.getLogger(__name__)

tax_bp = Blueprint("tax", __name__, url_prefix="/api/tax")


@tax_bp.route("/brackets", methods=["GET"])
def brackets():
    """源泉徴収税額表の参照。taxableIncome 指定時は該当行に適用税額を付ける。"""
    v = RequestValidator(request.args.to_dict(), coerce=True)
    table_type = v.string("tableType", choices=INCOME_TAX_TABLE_TYPES)
    dependents = v.integer("dependents", required=False, minimum=0, default=0)
    taxable_income = v.number("taxableIncome")
    if v.has_errors:
        return v.response("Invalid query parameters")

    try:
        data = list_tax_brackets(table_type, dependents, taxable_income)
    except Exception:
        logger.exception("Tax bracket lookup failed: table=%s", table_type)
        return fail("Failed to fetch tax brackets", 500)
    return ok(data)
