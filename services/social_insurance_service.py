"""社会保険料の計算。

料率表 (InsuranceRate) から支給日時点で有効な行を引き、標準報酬月額
(雇用保険・労災は賞与支給時は賞与額) に料率を掛けて円未満を切り捨てる。
"""
import logging
import math
from decimal import Decimal

from sqlalchemy import and_, or_

from models import InsuranceRate

logger = logging.getLogger(__name__)

# 内訳に出す順序と表示名
INSURANCE_LABELS = {
    "health": "健康保険",
    "nursing_care": "介護保険",
    "pension": "厚生年金",
    "employment": "雇用保険",
    "workers_compensation": "労災保険",
}


def insurance_label(component_type):
    return INSURANCE_LABELS.get(component_type, component_type)


def round_insurance(amount):
    """円未満切り捨て"""
    if amount is None:
        return 0
    return int(math.floor(amount))


def _portion(base, rate):
    return round_insurance(Decimal(str(base)) * Decimal(str(rate)))


def resolve_insurance_rate(insurance_type, on_date, remuneration=None, grade=None,
                           business_category=None):
    """支給日時点で適用される料率行を1件返す (なければ None)。

    Args:
        insurance_type: 'HEALTH' | 'NURSING' | 'PENSION' | 'EMPLOYMENT' | 'WORKERS'
        on_date: 基準日
        remuneration: 標準報酬月額 (指定時は範囲に含まれる行、または範囲なしの行に限定)
        grade: 等級 (指定時は一致する行に限定)
        business_category: 労災の事業の種類
    """
    query = InsuranceRate.query.filter(
        InsuranceRate.insurance_type == insurance_type,
        InsuranceRate.effective_from <= on_date,
        or_(InsuranceRate.effective_to.is_(None), InsuranceRate.effective_to >= on_date),
    )

    if grade is not None:
        query = query.filter(InsuranceRate.grade == grade)

    if remuneration is not None:
        query = query.filter(
            or_(
                InsuranceRate.threshold_low.is_(None),
                and_(
                    InsuranceRate.threshold_low <= remuneration,
                    or_(
                        InsuranceRate.threshold_high.is_(None),
                        InsuranceRate.threshold_high >= remuneration,
                    ),
                ),
            )
        )

    if business_category:
        query = query.filter(InsuranceRate.business_category == business_category)

    return query.order_by(
        InsuranceRate.grade.desc().nulls_first(),
        InsuranceRate.threshold_low.desc().nulls_first(),
        InsuranceRate.effective_from.desc(),
    ).first()


def calculate_social_insurance(payroll_date, profile, standard_monthly_remuneration=None,
                               bonus_amount=0):
    """社会保険料の内訳を計算する。

    Args:
        payroll_date: 支給日
        profile: EmployeeSocialInsurance またはそのスナップショット (None なら計算しない)
        standard_monthly_remuneration: 標準報酬月額 (None なら profile の値)
        bonus_amount: 賞与額

    Returns:
        list of dict: [{type, employeePortion, employerPortion}, ...]
    """
    if profile is None:
        return []

    if standard_monthly_remuneration is not None:
        remuneration = standard_monthly_remuneration
    else:
        remuneration = profile.standard_monthly_remuneration or 0
    bonus_amount = bonus_amount or 0
    # 雇用保険・労災の算定基礎
    wage_base = bonus_amount if bonus_amount > 0 else remuneration

    components = []

    def add(component_type, rate, base, employee_share=True):
        components.append({
            "type": component_type,
            "employeePortion": _portion(base, rate.employee_rate) if employee_share else 0,
            "employerPortion": _portion(base, rate.employer_rate),
        })

    if remuneration > 0:
        health_rate = resolve_insurance_rate(
            "HEALTH", payroll_date, remuneration, profile.health_insurance_grade,
        )
        if health_rate:
            add("health", health_rate, remuneration)

    # 介護保険 (40歳以上65歳未満の第2号被保険者のみ)
    if profile.nursing_care_applicable and remuneration > 0:
        nursing_rate = resolve_insurance_rate("NURSING", payroll_date, remuneration)
        if nursing_rate:
            add("nursing_care", nursing_rate, remuneration)

    if remuneration > 0:
        pension_rate = resolve_insurance_rate(
            "PENSION", payroll_date, remuneration, profile.health_insurance_grade,
        )
        if pension_rate:
            add("pension", pension_rate, remuneration)

    if profile.employment_insurance_applicable:
        employment_rate = resolve_insurance_rate("EMPLOYMENT", payroll_date)
        if employment_rate:
            add("employment", employment_rate, wage_base)

    # 労災保険は全額事業主負担
    workers_rate = resolve_insurance_rate(
        "WORKERS", payroll_date, business_category=profile.workers_compensation_class,
    )
    if workers_rate:
        add("workers_compensation", workers_rate, wage_base, employee_share=False)

    if not components:
        logger.info("No insurance rate matched: date=%s, remuneration=%s", payroll_date, remuneration)
    return components
