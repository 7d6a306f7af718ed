"""従業員 API の登録・参照と入力検証"""
import json

from models import Employee


def _post_employee(client, **overrides):
    data = {"employeeCode": "E200", "lastName": "鈴木", "firstName": "一郎", **overrides}
    return client.post(
        "/api/employees",
        data=json.dumps(data),
        content_type="application/json",
    )


# ── 登録 ─────────────────────────────────────────────

def test_create_employee_success(client, flask_app):
    """正常登録 → 201 + DB 保存"""
    resp = _post_employee(client, hireDate="2023-04-01")
    assert resp.status_code == 201
    data = resp.get_json()["data"]
    assert data["displayName"] == "鈴木 一郎"
    assert data["hireDate"] == "2023-04-01"
    assert data["payrollMaster"] is None
    assert Employee.query.filter_by(employee_code="E200").count() == 1


def test_create_employee_with_profiles(client, flask_app):
    resp = _post_employee(
        client,
        socialInsurance={"standardMonthlyRemuneration": 280000, "healthInsuranceGrade": 19},
        taxProfile={"dependentsCount": 2},
        payrollMaster={"baseSalary": 280000},
    )
    assert resp.status_code == 201
    data = resp.get_json()["data"]
    assert data["socialInsurance"]["healthInsuranceGrade"] == 19
    assert data["socialInsurance"]["employmentInsuranceApplicable"] is True
    assert data["tax"]["dependentsCount"] == 2
    assert data["tax"]["residentTaxMethod"] == "SPECIAL_COLLECTION"
    assert data["payrollMaster"]["baseSalary"] == 280000


def test_create_employee_missing_fields(client, flask_app):
    """必須項目の不足 → 400 + issues"""
    resp = _post_employee(client, employeeCode="", lastName=None)
    assert resp.status_code == 400
    paths = [issue["path"] for issue in resp.get_json()["issues"]]
    assert paths == [["employeeCode"], ["lastName"]]


def test_create_employee_nested_issue_path(client, flask_app):
    resp = _post_employee(client, taxProfile={"withholdingType": "OTSU"})
    assert resp.status_code == 400
    assert resp.get_json()["issues"][0]["path"] == ["taxProfile", "withholdingType"]


def test_create_employee_duplicate_code(client, flask_app):
    """同じ従業員コードの再登録 → 409"""
    _post_employee(client)
    resp = _post_employee(client, lastName="田中")
    assert resp.status_code == 409


# ── 参照 ─────────────────────────────────────────────

def test_list_employees_in_code_order(client, flask_app):
    _post_employee(client, employeeCode="E300")
    _post_employee(client, employeeCode="E100")
    data = client.get("/api/employees").get_json()["data"]
    assert [e["employeeCode"] for e in data] == ["E100", "E300"]


def test_get_employee_detail(client, employee):
    data = client.get(f"/api/employees/{employee.id}").get_json()["data"]
    assert data["employeeCode"] == "E001"
    assert data["socialInsurance"]["standardMonthlyRemuneration"] == 300000
    assert data["payrollMaster"]["overtimeMultiplier"] == 1.25


def test_get_employee_not_found(client, flask_app):
    resp = client.get("/api/employees/99999")
    assert resp.status_code == 404
