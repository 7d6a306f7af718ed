import logging

from flask import Blueprint, current_app, request

from extensions import limiter
from routes.utils import RequestValidator, fail, ok
from services.exceptions import EmployeeNotFoundError, PayrollInputError
from services.payroll_run_service import (
    ALLOWED_RUN_TYPES,
    execute_payroll_run,
    get_payroll_run,
    list_payroll_runs,
)
from services.payroll_service import RunPayrollCommand, run_payroll

logger = logging.getLogger(__name__)

payroll_bp = Blueprint("payroll", __name__, url_prefix="/api/payroll")


def _calculate_limit():
    return current_app.config.get("CALCULATE_RATE_LIMIT", "30 per minute")


@payroll_bp.route("/calculate", methods=["POST"])
@limiter.limit(_calculate_limit)
def calculate():
    """従業員1人分の給与計算 (保存はしない)"""
    v = RequestValidator(request.get_json(silent=True))
    employee_id = v.positive_integer("employeeId")
    payroll_date = v.date("payrollDate")
    period_start = v.date("periodStart")
    period_end = v.date("periodEnd")
    base_salary = v.number("baseSalary", minimum=0)
    overtime_hours = v.number("overtimeHours", minimum=0)
    overtime_rate = v.number("overtimeRate", minimum=0)
    allowances = v.item_lines("allowances")
    deductions = v.item_lines("deductions")
    bonus_amount = v.number("bonusAmount", minimum=0, default=0)
    include_resident_tax = v.boolean("includeResidentTax", default=True)

    if period_start and period_end and period_start > period_end:
        v.add("periodEnd", "periodEnd must not be before periodStart")
    if v.has_errors:
        return v.response()

    command = RunPayrollCommand(
        employee_id=employee_id,
        payroll_date=payroll_date,
        period_start=period_start,
        period_end=period_end,
        base_salary=base_salary,
        overtime_hours=overtime_hours,
        overtime_rate=overtime_rate,
        allowances=allowances,
        deductions=deductions,
        bonus_amount=bonus_amount,
        include_resident_tax=include_resident_tax,
    )

    try:
        result = run_payroll(command)
    except EmployeeNotFoundError as exc:
        return fail(str(exc), 404)
    except PayrollInputError as exc:
        v.add(exc.field or [], str(exc))
        return v.response()
    except Exception:
        logger.exception("Payroll calculation failed: employee=%s", employee_id)
        return fail("Unexpected error", 500)

    return ok(result.to_dict())


@payroll_bp.route("/runs", methods=["POST"])
def create_run():
    v = RequestValidator(request.get_json(silent=True))
    pay_date = v.date("payDate")
    period_start = v.date("periodStart")
    period_end = v.date("periodEnd")
    run_type = v.string("runType", required=False, choices=ALLOWED_RUN_TYPES, default="REGULAR")
    employee_ids = v.integer_list("employeeIds")

    bonus_amounts = {}
    raw_bonus = v.data.get("bonusAmounts")
    if raw_bonus is None:
        raw_bonus = []
    elif not isinstance(raw_bonus, list):
        v.add("bonusAmounts", "Expected array")
        raw_bonus = []
    for index, line in enumerate(raw_bonus):
        if not isinstance(line, dict):
            v.add(["bonusAmounts", index], "Expected object")
            continue
        line_v = RequestValidator(line)
        emp_id = line_v.positive_integer("employeeId")
        amount = line_v.number("amount", required=True, minimum=0)
        for issue in line_v.issues:
            v.add(["bonusAmounts", index] + issue["path"], issue["message"])
        if not line_v.has_errors:
            bonus_amounts[emp_id] = amount

    if run_type == "BONUS" and not bonus_amounts and not v.has_errors:
        v.add("bonusAmounts", "Required for BONUS runs")
    if period_start and period_end and period_start > period_end:
        v.add("periodEnd", "periodEnd must not be before periodStart")
    if v.has_errors:
        return v.response()

    try:
        run, created, skipped = execute_payroll_run(
            pay_date, period_start, period_end,
            run_type=run_type,
            employee_ids=employee_ids,
            bonus_amounts=bonus_amounts,
        )
    except Exception:
        logger.exception("Payroll run failed: pay_date=%s", pay_date)
        return fail("Payroll run failed", 500)

    data = run.to_dict()
    data["created"] = created
    data["skipped"] = skipped
    return ok(data, 201)


@payroll_bp.route("/runs", methods=["GET"])
def runs():
    return ok(list_payroll_runs())


@payroll_bp.route("/runs/<int:run_id>", methods=["GET"])
def run_detail(run_id):
    detail = get_payroll_run(run_id)
    if detail is None:
        return fail("Payroll run not found", 404)
    return ok(detail)
