import logging

from flask import Blueprint, request
from sqlalchemy.exc import IntegrityError

from models import (
    Employee,
    EmployeePayrollMaster,
    EmployeeSocialInsurance,
    EmployeeTaxProfile,
    db,
)
from models.employee import RESIDENT_TAX_METHODS, SALARY_TYPES, WITHHOLDING_TYPES
from routes.utils import RequestValidator, fail, ok

logger = logging.getLogger(__name__)

employee_bp = Blueprint("employee", __name__, url_prefix="/api/employees")


def _nested(v, key):
    """ネストしたオブジェクトを検証用に取り出す (エラーパスに key を前置する)"""
    value = v.data.get(key)
    if value is None:
        return None
    if not isinstance(value, dict):
        v.add(key, "Expected object")
        return None
    return RequestValidator(value)


def _merge_issues(v, key, nested):
    for issue in nested.issues:
        v.add([key] + issue["path"], issue["message"])


@employee_bp.route("", methods=["GET"])
def list_employees():
    query = Employee.query
    if request.args.get("active") in {"1", "true"}:
        query = query.filter(Employee.is_active.is_(True))
    employees = query.order_by(Employee.employee_code).all()
    return ok([e.to_dict() for e in employees])


@employee_bp.route("/<int:emp_id>", methods=["GET"])
def get_employee(emp_id):
    employee = db.session.get(Employee, emp_id)
    if employee is None:
        return fail("従業員が見つかりません。", 404)
    return ok(employee.to_detail_dict())


@employee_bp.route("", methods=["POST"])
def create_employee():
    """従業員を登録する。社会保険・税区分・給与マスタは任意で同時登録。"""
    v = RequestValidator(request.get_json(silent=True))
    employee_code = v.string("employeeCode")
    last_name = v.string("lastName")
    first_name = v.string("firstName")
    last_name_kana = v.string("lastNameKana", required=False, default="")
    first_name_kana = v.string("firstNameKana", required=False, default="")
    display_name = v.string("displayName", required=False, default="")
    email = v.string("email", required=False)
    hire_date = v.date("hireDate", required=False)

    social_insurance = None
    si = _nested(v, "socialInsurance")
    if si is not None:
        social_insurance = EmployeeSocialInsurance(
            standard_monthly_remuneration=si.integer(
                "standardMonthlyRemuneration", required=False, minimum=0,
            ),
            health_insurance_grade=si.integer("healthInsuranceGrade", required=False, minimum=1),
            nursing_care_applicable=si.boolean("nursingCareApplicable", default=False),
            employment_insurance_applicable=si.boolean(
                "employmentInsuranceApplicable", default=True,
            ),
            workers_compensation_class=si.string("workersCompensationClass", required=False),
            effective_from=si.date("effectiveFrom", required=False),
        )
        _merge_issues(v, "socialInsurance", si)

    tax_profile = None
    tp = _nested(v, "taxProfile")
    if tp is not None:
        tax_profile = EmployeeTaxProfile(
            withholding_type=tp.string(
                "withholdingType", required=False, choices=WITHHOLDING_TYPES, default="BASIC",
            ),
            dependents_count=tp.integer("dependentsCount", required=False, minimum=0, default=0),
            has_spouse_exemption=tp.boolean("hasSpouseExemption", default=False),
            resident_tax_method=tp.string(
                "residentTaxMethod", required=False, choices=RESIDENT_TAX_METHODS,
                default="SPECIAL_COLLECTION",
            ),
            effective_from=tp.date("effectiveFrom", required=False),
        )
        _merge_issues(v, "taxProfile", tp)

    payroll_master = None
    pm = _nested(v, "payrollMaster")
    if pm is not None:
        payroll_master = EmployeePayrollMaster(
            salary_type=pm.string(
                "salaryType", required=False, choices=SALARY_TYPES, default="MONTHLY",
            ),
            base_salary=pm.integer("baseSalary", minimum=0, default=0),
            overtime_divisor=pm.integer("overtimeDivisor", required=False, minimum=1),
            overtime_multiplier=pm.number("overtimeMultiplier", minimum=0),
        )
        _merge_issues(v, "payrollMaster", pm)

    if v.has_errors:
        return v.response()

    if Employee.query.filter_by(employee_code=employee_code).first() is not None:
        return fail(f"従業員コード {employee_code} は既に登録されています。", 409)

    try:
        employee = Employee(
            employee_code=employee_code,
            last_name=last_name,
            first_name=first_name,
            last_name_kana=last_name_kana,
            first_name_kana=first_name_kana,
            display_name=display_name or f"{last_name} {first_name}",
            email=email,
            hire_date=hire_date,
            is_active=True,
            social_insurance_profile=social_insurance,
            tax_profile=tax_profile,
            payroll_master=payroll_master,
        )
        db.session.add(employee)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return fail("従業員の重複登録はできません。", 409)
    except Exception as exc:
        db.session.rollback()
        logger.error("Employee create error: %s", exc)
        return fail("サーバーエラーが発生しました。", 500)

    logger.info("Employee created: id=%s, code=%s", employee.id, employee.employee_code)
    return ok(employee.to_detail_dict(), 201)
