"""給与計算の一括実行と結果保存"""
import logging

from models import Employee, EmployeePayrollMaster, PayrollCalculation, PayrollComponent, PayrollRun, db
from services.payroll_service import RunPayrollCommand, run_payroll

logger = logging.getLogger(__name__)

ALLOWED_RUN_TYPES = {"REGULAR", "BONUS"}


def _target_employees(employee_ids=None):
    query = (
        Employee.query
        .join(EmployeePayrollMaster, EmployeePayrollMaster.employee_id == Employee.id)
        .filter(Employee.is_active.is_(True))
    )
    if employee_ids:
        query = query.filter(Employee.id.in_(employee_ids))
    return query.order_by(Employee.employee_code).all()


def execute_payroll_run(pay_date, period_start, period_end, run_type="REGULAR",
                        employee_ids=None, bonus_amounts=None):
    """給与マスタのある在籍従業員を一括計算して保存する。

    Args:
        pay_date: 支給日
        period_start, period_end: 計算対象期間
        run_type: 'REGULAR' | 'BONUS'
        employee_ids: 対象を絞る場合の従業員 ID リスト
        bonus_amounts: 賞与支給時の {employee_id: 賞与額}

    Returns:
        (run, created, skipped)
    """
    bonus_amounts = bonus_amounts or {}
    employees = _target_employees(employee_ids)
    targeted = {e.id for e in employees}
    skipped = len(set(employee_ids or []) - targeted)

    run = PayrollRun(
        pay_date=pay_date,
        period_start=period_start,
        period_end=period_end,
        run_type=run_type,
        status="CALCULATED",
    )
    db.session.add(run)

    created = 0
    try:
        for employee in employees:
            bonus = bonus_amounts.get(employee.id, 0) if run_type == "BONUS" else 0
            if run_type == "BONUS" and not bonus:
                skipped += 1
                continue

            result = run_payroll(RunPayrollCommand(
                employee_id=employee.id,
                payroll_date=pay_date,
                period_start=period_start,
                period_end=period_end,
                base_salary=0 if run_type == "BONUS" else None,
                bonus_amount=bonus,
                include_resident_tax=run_type != "BONUS",
                include_master_items=run_type != "BONUS",
            ))

            calculation = PayrollCalculation(
                employee_id=employee.id,
                gross_pay=result.gross_pay,
                taxable_income=result.taxable_income,
                social_insurance_total=result.social_insurance_total,
                income_tax=result.income_tax,
                resident_tax=result.resident_tax,
                net_pay=result.net_pay,
                components=[
                    PayrollComponent(
                        position=position,
                        code=line["code"],
                        name=line["name"],
                        category=line["category"],
                        employee_portion=line["employeePortion"],
                        employer_portion=line.get("employerPortion"),
                    )
                    for position, line in enumerate(result.breakdown)
                ],
            )
            run.calculations.append(calculation)
            created += 1

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info(
        "Payroll run executed: id=%s, pay_date=%s, type=%s, created=%d, skipped=%d",
        run.id, pay_date, run_type, created, skipped,
    )
    return run, created, skipped


def list_payroll_runs():
    runs = PayrollRun.query.order_by(PayrollRun.pay_date.desc(), PayrollRun.id.desc()).all()
    return [run.to_dict() for run in runs]


def get_payroll_run(run_id):
    run = db.session.get(PayrollRun, run_id)
    if run is None:
        return None
    detail = run.to_dict()
    detail["calculations"] = [c.to_dict() for c in run.calculations]
    return detail
