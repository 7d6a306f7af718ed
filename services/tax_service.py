"""源泉所得税・住民税の計算"""
import logging
import math

from flask import current_app
from sqlalchemy import or_

from models import IncomeTaxBracket, TaxWithholdingHistory

logger = logging.getLogger(__name__)


def _cfg(key, default):
    return current_app.config.get(key, default)


def find_income_tax_bracket(table_type, dependents, taxable_income, on_date=None):
    """税額表から課税対象額を含む行を探す。

    金額は円単位に丸めて比較し、複数の改正版がある場合は施行日が新しいものを優先する。
    on_date を渡すとその日以降に施行される行は除外する。
    """
    amount = int(round(taxable_income))
    query = IncomeTaxBracket.query.filter(
        IncomeTaxBracket.table_type == table_type,
        IncomeTaxBracket.dependents == dependents,
        IncomeTaxBracket.lower_bound <= amount,
        or_(IncomeTaxBracket.upper_bound.is_(None), IncomeTaxBracket.upper_bound >= amount),
    )
    if on_date is not None:
        query = query.filter(IncomeTaxBracket.effective_from <= on_date)
    return query.order_by(IncomeTaxBracket.effective_from.desc()).first()


def bracket_tax(bracket):
    if bracket is None:
        return 0
    return max(0, bracket.tax_amount - (bracket.deduction or 0))


def calculate_income_tax(payroll_date, tax_profile, taxable_income, bonus_amount=None,
                         include_resident_tax=True):
    """源泉所得税と住民税 (特別徴収) を計算する。

    Args:
        payroll_date: 支給日
        tax_profile: EmployeeTaxProfile またはそのスナップショット
        taxable_income: 社会保険料控除後の課税対象額
        bonus_amount: 賞与額 (0 より大きければ賞与の税額表を賞与額で引く)
        include_resident_tax: False なら住民税を 0 とする

    Returns:
        (income_tax, resident_tax)
    """
    if tax_profile is None:
        return 0, 0

    is_bonus = bool(bonus_amount) and bonus_amount > 0
    table_type = "BONUS" if is_bonus else "MONTHLY"
    applicable_income = bonus_amount if is_bonus else taxable_income

    bracket = find_income_tax_bracket(
        table_type, tax_profile.dependents_count, applicable_income, on_date=payroll_date,
    )
    income_tax = bracket_tax(bracket)
    if bracket is None:
        logger.warning(
            "Income tax bracket not found: table=%s, dependents=%s, income=%s",
            table_type, tax_profile.dependents_count, applicable_income,
        )

    resident_tax = 0
    if include_resident_tax:
        resident_tax = calculate_resident_tax(payroll_date, tax_profile, taxable_income)

    return income_tax, resident_tax


def calculate_resident_tax(payroll_date, tax_profile, taxable_income):
    """特別徴収の住民税月額。

    直近の月額源泉履歴があればその額、なければ課税対象額の概算率 (既定 10%) を切り捨て。
    普通徴収の従業員は 0。
    """
    if tax_profile.resident_tax_method != "SPECIAL_COLLECTION":
        return 0

    history = (
        TaxWithholdingHistory.query
        .filter(
            TaxWithholdingHistory.employee_id == tax_profile.employee_id,
            TaxWithholdingHistory.table_type == "MONTHLY",
            TaxWithholdingHistory.effective_date <= payroll_date,
        )
        .order_by(TaxWithholdingHistory.effective_date.desc())
        .first()
    )
    if history:
        return history.tax_withheld

    rate = _cfg("RESIDENT_TAX_FALLBACK_RATE", 0.1)
    return int(math.floor(taxable_income * rate))


def list_tax_brackets(table_type, dependents=0, taxable_income=None):
    """税額表の一覧。taxable_income を渡すと該当行に適用税額を付ける。"""
    brackets = (
        IncomeTaxBracket.query
        .filter(
            IncomeTaxBracket.table_type == table_type,
            IncomeTaxBracket.dependents == dependents,
        )
        .order_by(IncomeTaxBracket.lower_bound.asc())
        .all()
    )

    result = []
    for bracket in brackets:
        effective_tax = bracket_tax(bracket)
        applied = None
        if taxable_income is not None:
            within_lower = taxable_income >= bracket.lower_bound
            within_upper = bracket.upper_bound is None or taxable_income <= bracket.upper_bound
            if within_lower and within_upper:
                applied = effective_tax

        result.append({
            "id": bracket.id,
            "range": {"min": bracket.lower_bound, "max": bracket.upper_bound},
            "baseTax": bracket.tax_amount,
            "deduction": bracket.deduction or 0,
            "effectiveTax": effective_tax,
            "effectiveFrom": bracket.effective_from.strftime("%Y-%m-%d"),
            "appliesToInput": applied is not None,
            "inputTax": applied,
        })
    return result
