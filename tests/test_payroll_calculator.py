"""PayrollCalculator の計算ロジック (社会保険・税額計算は差し替え)"""
from datetime import date

import pytest

from services.payroll_service import (
    AllowanceEntry,
    DeductionEntry,
    EmployeeSnapshot,
    PayrollCalculator,
    PayrollContext,
    PayrollMasterSnapshot,
    SocialInsuranceSnapshot,
    TaxSnapshot,
    resolve_overtime_pay,
)

PAY_DATE = date(2024, 6, 25)


class FakeSocialInsurance:
    def __init__(self, components=None):
        self.components = components if components is not None else [
            {"type": "health", "employeePortion": 15000, "employerPortion": 15000},
            {"type": "pension", "employeePortion": 27000, "employerPortion": 27000},
        ]
        self.calls = []

    def __call__(self, payroll_date, profile, remuneration, bonus_amount):
        self.calls.append((payroll_date, profile, remuneration, bonus_amount))
        return self.components


class FakeTax:
    def __init__(self, income_tax=5000, resident_tax=8000):
        self.income_tax = income_tax
        self.resident_tax = resident_tax
        self.calls = []

    def __call__(self, payroll_date, tax_profile, taxable_income, bonus_amount, include_resident):
        self.calls.append((taxable_income, bonus_amount, include_resident))
        return self.income_tax, self.resident_tax if include_resident else 0


def _employee(remuneration=300000, master=None):
    return EmployeeSnapshot(
        id=1,
        social_insurance=SocialInsuranceSnapshot(standard_monthly_remuneration=remuneration),
        tax=TaxSnapshot(employee_id=1, dependents_count=1),
        payroll_master=master,
    )


def _context(**overrides):
    values = dict(
        employee=_employee(),
        payroll_date=PAY_DATE,
        base_salary=300000,
        allowances=[
            AllowanceEntry("COMMUTE_ALLOWANCE", "通勤手当", "ALLOWANCE", 20000, taxable=False),
            AllowanceEntry("HOUSING_ALLOWANCE", "住宅手当", "ALLOWANCE", 30000),
        ],
        deductions=[DeductionEntry("UNION_FEE", "組合費", "DEDUCTION", 2000)],
    )
    values.update(overrides)
    return PayrollContext(**values)


# ── 金額計算 ─────────────────────────────────────────

def test_gross_taxable_and_net_pay():
    """総支給・課税対象・差引支給額"""
    si, tax = FakeSocialInsurance(), FakeTax()
    result = PayrollCalculator(si, tax).calculate(_context())

    assert result.gross_pay == 350000
    assert result.taxable_income == 330000
    assert result.social_insurance_total == 42000
    assert result.income_tax == 5000
    assert result.resident_tax == 8000
    assert result.net_pay == 350000 - 42000 - 5000 - 8000 - 2000


def test_tax_is_calculated_on_income_after_social_insurance():
    """税額計算には社会保険料控除後の額を渡す"""
    si, tax = FakeSocialInsurance(), FakeTax()
    PayrollCalculator(si, tax).calculate(_context())
    taxable, bonus, include_resident = tax.calls[0]
    assert taxable == 330000 - 42000
    assert bonus is None
    assert include_resident is True


def test_standard_remuneration_falls_back_to_base_salary():
    """標準報酬月額が未登録なら基本給を使う"""
    si = FakeSocialInsurance()
    PayrollCalculator(si, FakeTax()).calculate(_context(employee=_employee(remuneration=None)))
    assert si.calls[0][2] == 300000


def test_bonus_is_added_and_passed_to_collaborators():
    """賞与は総支給・課税対象に加算し、税額計算に賞与額を渡す"""
    si, tax = FakeSocialInsurance([]), FakeTax(income_tax=10200, resident_tax=0)
    result = PayrollCalculator(si, tax).calculate(
        _context(allowances=[], deductions=[], bonus_amount=100000),
    )
    assert result.gross_pay == 400000
    assert result.taxable_income == 400000
    assert si.calls[0][3] == 100000
    assert tax.calls[0][1] == 100000
    assert {"code": "BONUS", "name": "賞与", "category": "BONUS",
            "employeePortion": 100000} in result.breakdown


def test_resident_tax_can_be_excluded():
    result = PayrollCalculator(FakeSocialInsurance([]), FakeTax()).calculate(
        _context(include_resident_tax=False),
    )
    assert result.resident_tax == 0
    assert all(line["code"] != "RESIDENT_TAX" for line in result.breakdown)


# ── 内訳 ────────────────────────────────────────────

def test_breakdown_order():
    """基本給 → 時間外 → 手当 → 社会保険 → 税 → 控除 の順"""
    result = PayrollCalculator(FakeSocialInsurance(), FakeTax()).calculate(
        _context(overtime_hours=2, overtime_rate=2000),
    )
    codes = [line["code"] for line in result.breakdown]
    assert codes == [
        "BASE_SALARY",
        "OVERTIME",
        "COMMUTE_ALLOWANCE",
        "HOUSING_ALLOWANCE",
        "SOCIAL_HEALTH",
        "SOCIAL_PENSION",
        "INCOME_TAX",
        "RESIDENT_TAX",
        "UNION_FEE",
    ]


def test_social_insurance_lines_carry_employer_portion():
    result = PayrollCalculator(FakeSocialInsurance(), FakeTax()).calculate(_context())
    health = next(line for line in result.breakdown if line["code"] == "SOCIAL_HEALTH")
    assert health["name"] == "健康保険"
    assert health["category"] == "SOCIAL_INSURANCE"
    assert health["employerPortion"] == 15000
    assert "employerPortion" not in result.breakdown[0]


def test_zero_taxes_are_omitted_from_breakdown():
    result = PayrollCalculator(FakeSocialInsurance([]), FakeTax(0, 0)).calculate(_context())
    codes = {line["code"] for line in result.breakdown}
    assert "INCOME_TAX" not in codes
    assert "RESIDENT_TAX" not in codes


def test_to_dict_uses_camel_case():
    result = PayrollCalculator(FakeSocialInsurance(), FakeTax()).calculate(_context())
    data = result.to_dict()
    assert set(data) == {
        "grossPay", "socialInsurance", "taxableIncome", "incomeTax",
        "residentTax", "netPay", "breakdown",
    }


# ── 時間外手当 ──────────────────────────────────────

def test_overtime_uses_explicit_rate():
    assert resolve_overtime_pay(300000, 3, overtime_rate=2500) == 7500


def test_overtime_derived_from_base_salary():
    """300000 ÷ 160 × 1.25 = 2343.75 円/時"""
    assert resolve_overtime_pay(300000, 10) == pytest.approx(23437.5)


def test_overtime_zero_hours():
    assert resolve_overtime_pay(300000, None) == 0
    assert resolve_overtime_pay(300000, 0, overtime_rate=3000) == 0


def test_overtime_uses_payroll_master_conditions():
    """給与マスタの所定時間・割増率を優先する"""
    master = PayrollMasterSnapshot(base_salary=300000, overtime_divisor=150, overtime_multiplier=1.5)
    result = PayrollCalculator(FakeSocialInsurance([]), FakeTax(0, 0)).calculate(
        _context(employee=_employee(master=master), allowances=[], deductions=[], overtime_hours=1),
    )
    overtime = next(line for line in result.breakdown if line["code"] == "OVERTIME")
    assert overtime["employeePortion"] == 3000


def test_overtime_uses_calculator_defaults_without_master():
    calculator = PayrollCalculator(
        FakeSocialInsurance([]), FakeTax(0, 0),
        default_overtime_divisor=200, default_overtime_multiplier=1.0,
    )
    result = calculator.calculate(_context(allowances=[], deductions=[], overtime_hours=2))
    assert result.gross_pay == 300000 + 3000
