"""標準報酬月額の判定 (月額変更届・算定基礎届)"""
from datetime import date
from decimal import Decimal

import pytest

from models import InsuranceRate, db
from services.exceptions import EmployeeNotFoundError
from services.standard_remuneration_service import (
    build_month_list,
    build_standard_remuneration_report,
    evaluate_standard_remuneration,
)


def _add_health_grade(grade, low, high):
    db.session.add(InsuranceRate(
        insurance_type="HEALTH", grade=grade, threshold_low=low, threshold_high=high,
        employee_rate=Decimal("0.0495"), employer_rate=Decimal("0.0495"),
        effective_from=date(2024, 3, 1),
    ))
    db.session.commit()


def _messages(result):
    return [i["message"] for i in result["indicators"]]


def test_build_month_list_crosses_year():
    assert build_month_list(2024, 2, 3) == [(2023, 12), (2024, 1), (2024, 2)]
    assert build_month_list(2024, 6, 3) == [(2024, 4), (2024, 5), (2024, 6)]


def test_average_and_snapshots(employee):
    result = evaluate_standard_remuneration(employee.id, date(2024, 6, 15))
    assert result["averageRemuneration"] == 350000
    assert [s["label"] for s in result["snapshots"]] == ["2024年4月", "2024年5月", "2024年6月"]
    assert result["snapshots"][0]["fixedComponent"] == 350000
    assert result["snapshots"][0]["variableComponent"] == 10000
    assert result["currentGrade"] == 20
    assert result["currentStandardRemuneration"] == 300000


def test_no_matching_grade_keeps_current(employee):
    """等級表に該当がなければ差の判定はせず、現行維持のみ"""
    result = evaluate_standard_remuneration(employee.id, date(2024, 6, 15))
    assert result["recommendedGrade"] is None
    assert result["requiresMonthlyChange"] is False
    maintain = result["indicators"][-1]
    assert maintain["message"] == "現行標準報酬月額を維持できます"
    assert maintain["detail"] == "現行標準報酬月額: 300,000 円"


def test_grade_gap_of_two_requires_monthly_change(employee):
    _add_health_grade(22, 340000, 370000)
    result = evaluate_standard_remuneration(employee.id, date(2024, 6, 15))

    assert result["recommendedGrade"] == 22
    assert result["recommendedStandardRemuneration"] == 355000
    assert result["requiresMonthlyChange"] is True
    action = result["indicators"][0]
    assert action["type"] == "ACTION"
    assert action["message"] == "月額変更届の提出基準を超えています"
    assert action["detail"] == "現等級: 20 → 推奨等級: 22 (差 2 等級)"
    assert "現行標準報酬月額を維持できます" not in _messages(result)


def test_grade_gap_of_one_is_below_threshold(employee):
    _add_health_grade(21, 330000, 360000)
    _add_health_grade(22, 340000, 370000)
    result = evaluate_standard_remuneration(employee.id, date(2024, 6, 15))

    assert result["recommendedGrade"] == 21
    assert result["requiresMonthlyChange"] is False
    assert result["indicators"][0] == {
        "type": "INFO",
        "message": "月額変更届の提出基準未満です",
        "detail": "現等級と推奨等級の差: 1 等級",
    }
    assert "現行標準報酬月額を維持できます" in _messages(result)


def test_ungraded_row_does_not_shadow_grades(employee):
    """等級なしの行は昇順の最後に回る"""
    _add_health_grade(None, None, None)
    _add_health_grade(22, 340000, 370000)
    result = evaluate_standard_remuneration(employee.id, date(2024, 6, 15))
    assert result["recommendedGrade"] == 22


def test_july_requires_annual_recalculation(employee):
    """7月は算定基礎届の判定。7月分のスナップショットがないので不足の警告も出る"""
    _add_health_grade(22, 340000, 370000)
    result = evaluate_standard_remuneration(employee.id, date(2024, 7, 10))

    assert len(result["snapshots"]) == 2
    messages = _messages(result)
    assert messages[0] == "算定対象月の給与データが不足しています"
    assert "算定基礎届で標準報酬月額を改定する必要があります" in messages
    assert result["requiresAnnualRecalculation"] is True


def test_july_without_difference(employee):
    result = evaluate_standard_remuneration(employee.id, date(2024, 7, 10))
    assert "算定基礎届：現行等級と推奨等級に差異はありません" in _messages(result)
    assert result["requiresAnnualRecalculation"] is False


def test_no_snapshots(employee):
    result = evaluate_standard_remuneration(employee.id, date(2023, 1, 31))
    assert result["averageRemuneration"] is None
    assert result["snapshots"] == []
    messages = _messages(result)
    assert messages[0] == "算定対象月の給与データが不足しています"
    assert messages[-1] == "平均算出のためのスナップショットが見つかりません"


def test_unknown_employee(flask_app):
    with pytest.raises(EmployeeNotFoundError):
        evaluate_standard_remuneration(999, date(2024, 6, 1))


def test_report_wraps_evaluation(employee):
    report = build_standard_remuneration_report(employee.id, date(2024, 6, 1))
    assert report["employeeId"] == employee.id
    assert report["reference"] == "2024-06"
    assert report["evaluation"]["targetMonth"] == 6
