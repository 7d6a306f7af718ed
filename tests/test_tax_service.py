"""源泉所得税・住民税と税額表の参照"""
from datetime import date

from models import IncomeTaxBracket, TaxWithholdingHistory, db
from services.payroll_service import TaxSnapshot
from services.tax_service import (
    calculate_income_tax,
    calculate_resident_tax,
    find_income_tax_bracket,
    list_tax_brackets,
)

PAY_DATE = date(2024, 6, 25)


def test_find_bracket_by_amount(employee):
    bracket = find_income_tax_bracket("MONTHLY", 0, 320000)
    assert bracket.tax_amount == 1530


def test_find_bracket_rounds_to_yen(employee):
    """304999.4 円は 304999 円として下の行に入る"""
    bracket = find_income_tax_bracket("MONTHLY", 0, 304999.4)
    assert bracket.tax_amount == 0


def test_find_bracket_ignores_future_revision(employee):
    db.session.add(IncomeTaxBracket(
        table_type="MONTHLY", dependents=0, lower_bound=305000, upper_bound=349999,
        tax_amount=2000, deduction=0, effective_from=date(2025, 1, 1),
    ))
    db.session.commit()
    assert find_income_tax_bracket("MONTHLY", 0, 320000, on_date=PAY_DATE).tax_amount == 1530
    assert find_income_tax_bracket("MONTHLY", 0, 320000).tax_amount == 2000


def test_income_tax_monthly_and_resident_history(employee):
    """扶養1人・課税 320,000 円 → 630 円。住民税は源泉履歴の 8,000 円"""
    profile = TaxSnapshot(employee_id=employee.id, dependents_count=1)
    assert calculate_income_tax(PAY_DATE, profile, 320000) == (630, 8000)


def test_income_tax_uses_bonus_table(employee):
    profile = TaxSnapshot(employee_id=employee.id, dependents_count=0)
    income_tax, _ = calculate_income_tax(PAY_DATE, profile, 100000, bonus_amount=500000)
    assert income_tax == 102000


def test_income_tax_without_bracket_is_zero(employee):
    profile = TaxSnapshot(employee_id=employee.id, dependents_count=5)
    assert calculate_income_tax(PAY_DATE, profile, 320000, include_resident_tax=False) == (0, 0)


def test_income_tax_without_profile(employee):
    assert calculate_income_tax(PAY_DATE, None, 320000) == (0, 0)


def test_resident_tax_fallback_rate(employee):
    """履歴の施行日前は課税対象額の 10% (切り捨て)"""
    profile = TaxSnapshot(employee_id=employee.id)
    assert calculate_resident_tax(date(2024, 3, 25), profile, 285601) == 28560


def test_resident_tax_uses_latest_history(employee):
    db.session.add(TaxWithholdingHistory(
        employee_id=employee.id, table_type="MONTHLY", dependents=1,
        taxable_income=300000, tax_withheld=9000, effective_date=date(2024, 6, 1),
    ))
    db.session.commit()
    profile = TaxSnapshot(employee_id=employee.id)
    assert calculate_resident_tax(PAY_DATE, profile, 300000) == 9000
    assert calculate_resident_tax(date(2024, 5, 25), profile, 300000) == 8000


def test_resident_tax_ordinary_collection(employee):
    profile = TaxSnapshot(employee_id=employee.id, resident_tax_method="ORDINARY_COLLECTION")
    assert calculate_resident_tax(PAY_DATE, profile, 300000) == 0


def test_list_tax_brackets_marks_input_row(employee):
    rows = list_tax_brackets("MONTHLY", 0, 320000)
    assert [r["range"] for r in rows] == [
        {"min": 0, "max": 304999},
        {"min": 305000, "max": 349999},
    ]
    assert rows[0]["appliesToInput"] is False
    assert rows[0]["inputTax"] is None
    assert rows[1]["appliesToInput"] is True
    assert rows[1]["inputTax"] == 1530
    assert rows[1]["effectiveTax"] == 1530


def test_list_tax_brackets_without_input(employee):
    rows = list_tax_brackets("BONUS")
    assert len(rows) == 1
    assert rows[0]["baseTax"] == 102000
    assert rows[0]["appliesToInput"] is False
