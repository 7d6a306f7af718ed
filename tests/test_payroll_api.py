"""給与計算 API と一括実行"""
import json
from datetime import date

from models import PayrollCalculation, PayrollRun
from services.payroll_run_service import execute_payroll_run


def _calculate(client, **overrides):
    data = {
        "employeeId": 1,
        "payrollDate": "2024-06-25T00:00:00+09:00",
        "periodStart": "2024-06-01T00:00:00+09:00",
        "periodEnd": "2024-06-30T00:00:00+09:00",
        **overrides,
    }
    return client.post(
        "/api/payroll/calculate",
        data=json.dumps(data),
        content_type="application/json",
    )


# ── 計算 ─────────────────────────────────────────────

def test_calculate_with_master_values(client, employee):
    """給与マスタの基本給 300,000 円 + 登録手当で計算"""
    resp = _calculate(client, employeeId=employee.id)
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["ok"] is True

    data = body["data"]
    assert data["grossPay"] == 350000
    assert data["taxableIncome"] == 330000
    assert data["incomeTax"] == 0
    assert data["residentTax"] == 8000
    assert data["netPay"] == 350000 - 44400 - 8000
    assert sum(c["employeePortion"] for c in data["socialInsurance"]) == 44400
    assert [line["code"] for line in data["breakdown"]][:3] == [
        "BASE_SALARY", "COMMUTE_ALLOWANCE", "HOUSING_ALLOWANCE",
    ]


def test_calculate_with_explicit_salary_and_items(client, employee):
    resp = _calculate(
        client,
        employeeId=employee.id,
        baseSalary=320000,
        allowances=[{"itemCode": "SPECIAL", "amount": 5000}],
        deductions=[{"itemCode": "UNION_FEE", "amount": 1000}],
    )
    data = resp.get_json()["data"]
    assert data["grossPay"] == 375000
    # 320000 + 30000 + 5000 - 44400 = 310600 → 扶養1人の行 630 円
    assert data["incomeTax"] == 630
    assert data["netPay"] == 375000 - 44400 - 630 - 8000 - 1000
    special = next(line for line in data["breakdown"] if line["code"] == "SPECIAL")
    assert special["name"] == "SPECIAL"
    assert data["breakdown"][-1]["code"] == "UNION_FEE"


def test_calculate_without_resident_tax(client, employee):
    resp = _calculate(client, employeeId=employee.id, includeResidentTax=False)
    assert resp.get_json()["data"]["residentTax"] == 0


def test_calculate_validation_issues(client, flask_app):
    """不正な値は issues にまとめて 400"""
    resp = client.post(
        "/api/payroll/calculate",
        data=json.dumps({
            "employeeId": 0,
            "payrollDate": "25/06/2024",
            "baseSalary": -1,
            "allowances": [{"amount": 100}],
        }),
        content_type="application/json",
    )
    assert resp.status_code == 400
    body = resp.get_json()
    assert body["ok"] is False
    assert body["message"] == "Validation error"
    paths = [issue["path"] for issue in body["issues"]]
    assert ["employeeId"] in paths
    assert ["payrollDate"] in paths
    assert ["periodStart"] in paths
    assert ["baseSalary"] in paths
    assert ["allowances", 0, "itemCode"] in paths


def test_calculate_unknown_employee(client, flask_app):
    resp = _calculate(client, employeeId=999, baseSalary=300000)
    assert resp.status_code == 404
    assert resp.get_json()["ok"] is False


def test_calculate_requires_base_salary_without_master(client, flask_app):
    created = client.post(
        "/api/employees",
        data=json.dumps({"employeeCode": "E100", "lastName": "佐藤", "firstName": "花子"}),
        content_type="application/json",
    ).get_json()["data"]

    resp = _calculate(client, employeeId=created["id"])
    assert resp.status_code == 400
    assert resp.get_json()["issues"][0]["path"] == ["baseSalary"]


# ── 一括実行 ─────────────────────────────────────────

def test_create_run_and_fetch_detail(client, employee):
    resp = client.post(
        "/api/payroll/runs",
        data=json.dumps({
            "payDate": "2024-06-25",
            "periodStart": "2024-06-01",
            "periodEnd": "2024-06-30",
        }),
        content_type="application/json",
    )
    assert resp.status_code == 201
    run = resp.get_json()["data"]
    assert run["runType"] == "REGULAR"
    assert run["status"] == "CALCULATED"
    assert run["created"] == 1
    assert run["employeeCount"] == 1

    detail = client.get(f"/api/payroll/runs/{run['id']}").get_json()["data"]
    calculation = detail["calculations"][0]
    assert calculation["employeeCode"] == "E001"
    assert calculation["netPay"] == 297600
    assert calculation["components"][0]["code"] == "BASE_SALARY"

    listing = client.get("/api/payroll/runs").get_json()["data"]
    assert [r["id"] for r in listing] == [run["id"]]


def test_run_detail_not_found(client, flask_app):
    assert client.get("/api/payroll/runs/42").status_code == 404


def test_bonus_run_requires_amounts(client, employee):
    resp = client.post(
        "/api/payroll/runs",
        data=json.dumps({
            "payDate": "2024-07-10",
            "periodStart": "2024-07-01",
            "periodEnd": "2024-07-10",
            "runType": "BONUS",
        }),
        content_type="application/json",
    )
    assert resp.status_code == 400
    assert resp.get_json()["issues"][0]["path"] == ["bonusAmounts"]


def test_bonus_amounts_must_be_array(client, employee):
    """bonusAmounts が配列でなければ 400 (500 にしない)"""
    resp = client.post(
        "/api/payroll/runs",
        data=json.dumps({
            "payDate": "2024-07-10",
            "periodStart": "2024-07-01",
            "periodEnd": "2024-07-10",
            "runType": "BONUS",
            "bonusAmounts": 5,
        }),
        content_type="application/json",
    )
    assert resp.status_code == 400
    body = resp.get_json()
    assert body["message"] == "Validation error"
    assert body["issues"] == [{"path": ["bonusAmounts"], "message": "Expected array"}]


def test_bonus_run_uses_bonus_only(employee):
    run, created, skipped = execute_payroll_run(
        date(2024, 7, 10), date(2024, 7, 1), date(2024, 7, 10),
        run_type="BONUS", bonus_amounts={employee.id: 500000},
    )
    assert (created, skipped) == (1, 0)

    calculation = PayrollCalculation.query.filter_by(run_id=run.id).one()
    assert calculation.gross_pay == 500000
    assert calculation.resident_tax == 0
    codes = [c.code for c in calculation.components]
    assert "BONUS" in codes
    assert "COMMUTE_ALLOWANCE" not in codes


def test_run_skips_unknown_employee_ids(employee):
    run, created, skipped = execute_payroll_run(
        date(2024, 6, 25), date(2024, 6, 1), date(2024, 6, 30),
        employee_ids=[employee.id, 999],
    )
    assert (created, skipped) == (1, 1)
    assert PayrollRun.query.count() == 1
