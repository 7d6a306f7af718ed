"""給与計算ロジック。

PayrollCalculator は社会保険・税額の計算関数を注入して使う純粋な計算部分、
run_payroll は DB から従業員・手当・控除を集めて PayrollCalculator に渡すユースケース。
"""
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from flask import current_app
from sqlalchemy import or_

from models import (
    Employee,
    EmployeeAllowance,
    EmployeeDeduction,
    PayrollItemDefinition,
    db,
)
from services.exceptions import EmployeeNotFoundError, PayrollInputError
from services.social_insurance_service import calculate_social_insurance, insurance_label
from services.tax_service import calculate_income_tax

logger = logging.getLogger(__name__)

DEFAULT_OVERTIME_BASE_DIVISOR = 160
DEFAULT_OVERTIME_MULTIPLIER = 1.25


# ── 計算入力のスナップショット ──

@dataclass
class SocialInsuranceSnapshot:
    standard_monthly_remuneration: Optional[int] = None
    health_insurance_grade: Optional[int] = None
    nursing_care_applicable: bool = False
    employment_insurance_applicable: bool = False
    workers_compensation_class: Optional[str] = None


@dataclass
class TaxSnapshot:
    employee_id: int
    dependents_count: int = 0
    resident_tax_method: str = "SPECIAL_COLLECTION"
    withholding_type: str = "BASIC"


@dataclass
class PayrollMasterSnapshot:
    salary_type: str = "MONTHLY"
    base_salary: int = 0
    overtime_divisor: Optional[int] = None
    overtime_multiplier: Optional[float] = None


@dataclass
class EmployeeSnapshot:
    id: int
    social_insurance: Optional[SocialInsuranceSnapshot] = None
    tax: Optional[TaxSnapshot] = None
    payroll_master: Optional[PayrollMasterSnapshot] = None


@dataclass
class AllowanceEntry:
    code: str
    name: str
    category: str
    amount: float
    taxable: bool = True


@dataclass
class DeductionEntry:
    code: str
    name: str
    category: str
    amount: float


@dataclass
class PayrollContext:
    employee: EmployeeSnapshot
    payroll_date: date
    base_salary: float
    overtime_hours: Optional[float] = None
    overtime_rate: Optional[float] = None
    allowances: list = field(default_factory=list)
    deductions: list = field(default_factory=list)
    bonus_amount: float = 0
    include_resident_tax: bool = True


@dataclass
class PayrollResult:
    gross_pay: float
    social_insurance: list
    taxable_income: float
    income_tax: int
    resident_tax: int
    net_pay: float
    breakdown: list

    @property
    def social_insurance_total(self):
        return sum(c["employeePortion"] for c in self.social_insurance)

    def to_dict(self):
        return {
            "grossPay": self.gross_pay,
            "socialInsurance": self.social_insurance,
            "taxableIncome": self.taxable_income,
            "incomeTax": self.income_tax,
            "residentTax": self.resident_tax,
            "netPay": self.net_pay,
            "breakdown": self.breakdown,
        }


@dataclass
class RunPayrollCommand:
    employee_id: int
    payroll_date: date
    period_start: Optional[date] = None
    period_end: Optional[date] = None
    base_salary: Optional[float] = None
    overtime_hours: Optional[float] = None
    overtime_rate: Optional[float] = None
    allowances: list = field(default_factory=list)   # [{"itemCode", "amount"}]
    deductions: list = field(default_factory=list)
    bonus_amount: float = 0
    include_resident_tax: bool = True
    include_master_items: bool = True


def resolve_overtime_pay(base_salary, overtime_hours, overtime_rate=None, divisor=None,
                         multiplier=None):
    """時間外手当 = 時間数 × 単価 (小数2桁)。

    単価の指定がなければ 基本給 ÷ 月所定時間 × 割増率 で求める。
    """
    hours = overtime_hours or 0
    if not hours:
        return 0

    if overtime_rate is None:
        divisor = divisor or DEFAULT_OVERTIME_BASE_DIVISOR
        multiplier = multiplier or DEFAULT_OVERTIME_MULTIPLIER
        overtime_rate = base_salary / divisor * float(multiplier)
    return round(hours * overtime_rate, 2)


def _line(code, name, category, employee_portion, employer_portion=None):
    item = {
        "code": code,
        "name": name,
        "category": category,
        "employeePortion": employee_portion,
    }
    if employer_portion is not None:
        item["employerPortion"] = employer_portion
    return item


class PayrollCalculator:
    """1人分の給与を計算して内訳を組み立てる。

    social_insurance_calculator(payroll_date, profile, standard_monthly_remuneration, bonus_amount)
    tax_calculator(payroll_date, tax_profile, taxable_income, bonus_amount, include_resident_tax)
    """

    def __init__(self, social_insurance_calculator=None, tax_calculator=None,
                 default_overtime_divisor=DEFAULT_OVERTIME_BASE_DIVISOR,
                 default_overtime_multiplier=DEFAULT_OVERTIME_MULTIPLIER):
        self.social_insurance_calculator = social_insurance_calculator or calculate_social_insurance
        self.tax_calculator = tax_calculator or calculate_income_tax
        self.default_overtime_divisor = default_overtime_divisor
        self.default_overtime_multiplier = default_overtime_multiplier

    def calculate(self, context):
        master = context.employee.payroll_master
        overtime_pay = resolve_overtime_pay(
            context.base_salary,
            context.overtime_hours,
            context.overtime_rate,
            divisor=(master.overtime_divisor if master else None) or self.default_overtime_divisor,
            multiplier=(
                (master.overtime_multiplier if master else None) or self.default_overtime_multiplier
            ),
        )

        allowances_total = sum(a.amount for a in context.allowances)
        taxable_allowance_total = sum(a.amount for a in context.allowances if a.taxable)
        deduction_total = sum(d.amount for d in context.deductions)

        bonus_amount = context.bonus_amount or 0
        gross_pay = round(context.base_salary + allowances_total + overtime_pay + bonus_amount, 2)
        taxable_income = round(
            context.base_salary + taxable_allowance_total + overtime_pay + max(bonus_amount, 0), 2,
        )

        components = self.social_insurance_calculator(
            context.payroll_date,
            context.employee.social_insurance,
            self.resolve_standard_remuneration(context.employee, context.base_salary),
            bonus_amount,
        )
        social_insurance_total = sum(c.get("employeePortion") or 0 for c in components)

        income_tax, resident_tax = self.tax_calculator(
            context.payroll_date,
            context.employee.tax,
            taxable_income - social_insurance_total,
            bonus_amount if bonus_amount > 0 else None,
            context.include_resident_tax,
        )

        net_pay = round(
            gross_pay - social_insurance_total - income_tax - resident_tax - deduction_total, 2,
        )

        breakdown = [_line("BASE_SALARY", "基本給", "EARNING", context.base_salary)]
        if overtime_pay:
            breakdown.append(_line("OVERTIME", "時間外手当", "ALLOWANCE", overtime_pay))
        breakdown.extend(
            _line(a.code, a.name, a.category, a.amount) for a in context.allowances
        )
        if bonus_amount:
            breakdown.append(_line("BONUS", "賞与", "BONUS", bonus_amount))
        for component in components:
            breakdown.append(_line(
                f"SOCIAL_{component['type'].upper()}",
                insurance_label(component["type"]),
                "SOCIAL_INSURANCE",
                component["employeePortion"],
                component["employerPortion"],
            ))
        if income_tax > 0:
            breakdown.append(_line("INCOME_TAX", "源泉所得税", "TAX", income_tax))
        if resident_tax > 0:
            breakdown.append(_line("RESIDENT_TAX", "住民税", "TAX", resident_tax))
        breakdown.extend(
            _line(d.code, d.name, d.category, d.amount) for d in context.deductions
        )

        return PayrollResult(
            gross_pay=gross_pay,
            social_insurance=components,
            taxable_income=taxable_income,
            income_tax=income_tax,
            resident_tax=resident_tax,
            net_pay=net_pay,
            breakdown=breakdown,
        )

    @staticmethod
    def resolve_standard_remuneration(employee, base_salary):
        """標準報酬月額が未登録なら基本給で代用する"""
        profile = employee.social_insurance
        if profile is not None and profile.standard_monthly_remuneration is not None:
            return profile.standard_monthly_remuneration
        return base_salary


# ── DB からの取得 ──

def get_employee_snapshot(employee_id):
    employee = db.session.get(Employee, employee_id)
    if employee is None:
        return None

    snapshot = EmployeeSnapshot(id=employee.id)

    si = employee.social_insurance_profile
    if si is not None:
        snapshot.social_insurance = SocialInsuranceSnapshot(
            standard_monthly_remuneration=si.standard_monthly_remuneration,
            health_insurance_grade=si.health_insurance_grade,
            nursing_care_applicable=bool(si.nursing_care_applicable),
            employment_insurance_applicable=bool(si.employment_insurance_applicable),
            workers_compensation_class=si.workers_compensation_class,
        )

    tax = employee.tax_profile
    if tax is not None:
        snapshot.tax = TaxSnapshot(
            employee_id=employee.id,
            dependents_count=tax.dependents_count,
            resident_tax_method=tax.resident_tax_method,
            withholding_type=tax.withholding_type,
        )

    master = employee.payroll_master
    if master is not None:
        snapshot.payroll_master = PayrollMasterSnapshot(
            salary_type=master.salary_type,
            base_salary=master.base_salary,
            overtime_divisor=master.overtime_divisor,
            overtime_multiplier=(
                float(master.overtime_multiplier) if master.overtime_multiplier is not None else None
            ),
        )

    return snapshot


def _active_filter(model, payroll_date):
    return (
        model.start_date <= payroll_date,
        or_(model.end_date.is_(None), model.end_date >= payroll_date),
    )


def get_active_allowances(employee_id, payroll_date):
    rows = (
        EmployeeAllowance.query
        .filter(EmployeeAllowance.employee_id == employee_id,
                *_active_filter(EmployeeAllowance, payroll_date))
        .order_by(EmployeeAllowance.id)
        .all()
    )
    return [
        AllowanceEntry(
            code=row.item.code,
            name=row.item.name,
            category=row.item.category,
            amount=row.amount,
            taxable=row.taxable,
        )
        for row in rows
    ]


def get_active_deductions(employee_id, payroll_date):
    rows = (
        EmployeeDeduction.query
        .filter(EmployeeDeduction.employee_id == employee_id,
                *_active_filter(EmployeeDeduction, payroll_date))
        .order_by(EmployeeDeduction.id)
        .all()
    )
    return [
        DeductionEntry(
            code=row.item.code,
            name=row.item.name,
            category=row.item.category,
            amount=row.amount,
        )
        for row in rows
    ]


def get_item_definitions(codes):
    if not codes:
        return {}
    rows = PayrollItemDefinition.query.filter(PayrollItemDefinition.code.in_(codes)).all()
    return {row.code: row for row in rows}


def _manual_allowance(line, definitions):
    definition = definitions.get(line["itemCode"])
    return AllowanceEntry(
        code=line["itemCode"],
        name=definition.name if definition else line["itemCode"],
        category=definition.category if definition else "ALLOWANCE",
        amount=line["amount"],
        taxable=definition.taxable if definition else True,
    )


def _manual_deduction(line, definitions):
    definition = definitions.get(line["itemCode"])
    return DeductionEntry(
        code=line["itemCode"],
        name=definition.name if definition else line["itemCode"],
        category=definition.category if definition else "DEDUCTION",
        amount=line["amount"],
    )


def run_payroll(command, calculator=None):
    """従業員1人分の給与を計算する。

    手当・控除は「支給日時点で有効なマスタ登録分」+「リクエストで指定された分」。

    Raises:
        EmployeeNotFoundError: 従業員が存在しない
        PayrollInputError: 基本給が指定されずマスタにもない
    """
    employee = get_employee_snapshot(command.employee_id)
    if employee is None:
        raise EmployeeNotFoundError(command.employee_id)

    base_salary = command.base_salary
    if base_salary is None:
        if employee.payroll_master is None:
            raise PayrollInputError("基本給が指定されておらず、給与マスタもありません。", "baseSalary")
        base_salary = employee.payroll_master.base_salary

    payroll_date = command.payroll_date
    manual_codes = {line["itemCode"] for line in command.allowances}
    manual_codes.update(line["itemCode"] for line in command.deductions)
    definitions = get_item_definitions(sorted(manual_codes))

    allowances = []
    deductions = []
    if command.include_master_items:
        allowances = get_active_allowances(employee.id, payroll_date)
        deductions = get_active_deductions(employee.id, payroll_date)
    allowances.extend(_manual_allowance(line, definitions) for line in command.allowances)
    deductions.extend(_manual_deduction(line, definitions) for line in command.deductions)

    if calculator is None:
        cfg = current_app.config
        calculator = PayrollCalculator(
            default_overtime_divisor=cfg.get("OVERTIME_BASE_DIVISOR", DEFAULT_OVERTIME_BASE_DIVISOR),
            default_overtime_multiplier=cfg.get("OVERTIME_MULTIPLIER", DEFAULT_OVERTIME_MULTIPLIER),
        )

    context = PayrollContext(
        employee=employee,
        payroll_date=payroll_date,
        base_salary=base_salary,
        overtime_hours=command.overtime_hours,
        overtime_rate=command.overtime_rate,
        allowances=allowances,
        deductions=deductions,
        bonus_amount=command.bonus_amount or 0,
        include_resident_tax=command.include_resident_tax,
    )
    result = calculator.calculate(context)
    logger.info(
        "Payroll calculated: employee=%s, date=%s, gross=%s, net=%s",
        employee.id, payroll_date, result.gross_pay, result.net_pay,
    )
    return result
