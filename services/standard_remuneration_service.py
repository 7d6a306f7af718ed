"""標準報酬月額の判定 (月額変更届・算定基礎届の要否)。

直近3か月の報酬スナップショットを平均し、健康保険の等級表に当てはめて
現行等級との差から届出の要否を示すメッセージを返す。
"""
import logging
import math

from flask import current_app
from sqlalchemy import and_, or_

from models import Employee, InsuranceRate, MonthlyRemunerationSnapshot, db
from services.exceptions import EmployeeNotFoundError

logger = logging.getLogger(__name__)


def _round_half_up(value):
    return int(math.floor(value + 0.5))


def _indicator(kind, message, detail=None):
    item = {"type": kind, "message": message}
    if detail is not None:
        item["detail"] = detail
    return item


def compute_snapshot_amounts(snapshot):
    """固定的賃金・非固定的賃金・報酬額を付けた辞書を返す。

    スナップショットに標準報酬月額が記録されていればそれを報酬額とする。
    """
    fixed_component = (snapshot.base_salary or 0) + (snapshot.allowance_total or 0)
    variable_component = snapshot.overtime_total or 0
    if snapshot.standard_monthly_remuneration is not None:
        total = snapshot.standard_monthly_remuneration
    else:
        total = fixed_component + variable_component

    return {
        "id": snapshot.id,
        "year": snapshot.year,
        "month": snapshot.month,
        "baseSalary": snapshot.base_salary,
        "allowanceTotal": snapshot.allowance_total,
        "overtimeTotal": snapshot.overtime_total,
        "standardMonthlyRemuneration": snapshot.standard_monthly_remuneration,
        "fixedComponent": fixed_component,
        "variableComponent": variable_component,
        "totalRemuneration": total,
        "label": f"{snapshot.year}年{snapshot.month}月",
    }


def build_month_list(year, month, months):
    """(year, month) を含む過去 months か月を古い順に返す"""
    result = []
    index = year * 12 + (month - 1)
    for offset in range(months - 1, -1, -1):
        y, m = divmod(index - offset, 12)
        result.append((y, m + 1))
    return result


def resolve_health_insurance_grade(remuneration, reference_date):
    """平均報酬額が収まる健康保険の等級行 (最も低い等級) を返す"""
    if not remuneration:
        return None

    return (
        InsuranceRate.query
        .filter(
            InsuranceRate.insurance_type == "HEALTH",
            InsuranceRate.effective_from <= reference_date,
            or_(InsuranceRate.effective_to.is_(None), InsuranceRate.effective_to >= reference_date),
            or_(
                InsuranceRate.threshold_low.is_(None),
                and_(
                    InsuranceRate.threshold_low <= remuneration,
                    or_(
                        InsuranceRate.threshold_high.is_(None),
                        InsuranceRate.threshold_high >= remuneration,
                    ),
                ),
            ),
        )
        .order_by(
            InsuranceRate.grade.asc().nulls_last(),
            InsuranceRate.threshold_low.asc().nulls_last(),
        )
        .first()
    )


def evaluate_standard_remuneration(employee_id, reference_date):
    """標準報酬月額を評価する。

    Args:
        employee_id: 従業員 ID
        reference_date: 基準日 (この月を含む直近3か月を平均)

    Returns:
        dict: 平均報酬・推奨等級・現行等級・届出要否・メッセージ・スナップショット

    Raises:
        EmployeeNotFoundError
    """
    employee = db.session.get(Employee, employee_id)
    if employee is None:
        raise EmployeeNotFoundError(employee_id)

    cfg = current_app.config
    profile = employee.social_insurance_profile
    target_year = reference_date.year
    target_month = reference_date.month

    months = build_month_list(
        target_year, target_month, cfg.get("STANDARD_REMUNERATION_MONTHS", 3),
    )

    rows = (
        MonthlyRemunerationSnapshot.query
        .filter(
            MonthlyRemunerationSnapshot.employee_id == employee_id,
            or_(*[
                and_(MonthlyRemunerationSnapshot.year == y, MonthlyRemunerationSnapshot.month == m)
                for y, m in months
            ]),
        )
        .all()
    )
    by_month = {(row.year, row.month): compute_snapshot_amounts(row) for row in rows}
    snapshots = [by_month[key] for key in months if key in by_month]

    indicators = []
    if len(snapshots) < len(months):
        indicators.append(_indicator(
            "WARNING",
            "算定対象月の給与データが不足しています",
            "直近3か月分の標準報酬スナップショットを登録してください。",
        ))

    average = None
    if snapshots:
        average = sum(s["totalRemuneration"] for s in snapshots) / len(snapshots)

    recommended_grade = None
    recommended_remuneration = None
    if average is not None:
        rate = resolve_health_insurance_grade(average, reference_date)
        if rate is not None and rate.grade is not None:
            recommended_grade = rate.grade
            lower = rate.threshold_low if rate.threshold_low else average
            upper = rate.threshold_high if rate.threshold_high else average
            recommended_remuneration = _round_half_up((lower + upper) / 2)

    current_grade = profile.health_insurance_grade if profile else None
    current_remuneration = profile.standard_monthly_remuneration if profile else None

    requires_monthly_change = False
    requires_annual_recalculation = False

    if recommended_grade is not None and current_grade is not None:
        gap = abs(recommended_grade - current_grade)
        if gap >= cfg.get("MONTHLY_CHANGE_GRADE_GAP", 2):
            requires_monthly_change = True
            indicators.append(_indicator(
                "ACTION",
                "月額変更届の提出基準を超えています",
                f"現等級: {current_grade} → 推奨等級: {recommended_grade} (差 {gap} 等級)",
            ))
        else:
            indicators.append(_indicator(
                "INFO",
                "月額変更届の提出基準未満です",
                f"現等級と推奨等級の差: {gap} 等級",
            ))

    # 7月は算定基礎届 (4〜6月の平均で改定)
    if target_month == cfg.get("ANNUAL_RECALCULATION_MONTH", 7):
        if (recommended_grade is not None and current_grade is not None
                and recommended_grade != current_grade):
            requires_annual_recalculation = True
            indicators.append(_indicator(
                "ACTION",
                "算定基礎届で標準報酬月額を改定する必要があります",
                f"現等級: {current_grade} → 推奨等級: {recommended_grade}",
            ))
        else:
            indicators.append(_indicator(
                "INFO", "算定基礎届：現行等級と推奨等級に差異はありません",
            ))

    if not requires_monthly_change and not requires_annual_recalculation and profile:
        indicators.append(_indicator(
            "INFO",
            "現行標準報酬月額を維持できます",
            f"現行標準報酬月額: {current_remuneration:,} 円" if current_remuneration else None,
        ))

    if not snapshots:
        indicators.append(_indicator("WARNING", "平均算出のためのスナップショットが見つかりません"))

    logger.info(
        "Standard remuneration evaluated: employee=%s, ref=%s-%02d, average=%s, grade=%s→%s",
        employee_id, target_year, target_month, average, current_grade, recommended_grade,
    )

    return {
        "employeeId": employee_id,
        "targetYear": target_year,
        "targetMonth": target_month,
        "averageRemuneration": _round_half_up(average) if average is not None else None,
        "recommendedGrade": recommended_grade,
        "recommendedStandardRemuneration": recommended_remuneration,
        "currentGrade": current_grade,
        "currentStandardRemuneration": current_remuneration,
        "requiresMonthlyChange": requires_monthly_change,
        "requiresAnnualRecalculation": requires_annual_recalculation,
        "indicators": indicators,
        "snapshots": snapshots,
    }


def build_standard_remuneration_report(employee_id, reference_date):
    evaluation = evaluate_standard_remuneration(employee_id, reference_date)
    return {
        "employeeId": employee_id,
        "reference": reference_date.strftime("%Y-%m"),
        "evaluation": evaluation,
    }
