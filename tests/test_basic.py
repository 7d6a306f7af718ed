import json


def test_health(client):
    """ヘルスチェック"""
    response = client.get('/health')
    assert response.status_code == 200
    assert response.get_json()["status"] == "healthy"


def test_security_headers(client):
    response = client.get('/health')
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "SAMEORIGIN"


def test_404_is_json(client):
    """存在しない URL は JSON の 404"""
    response = client.get('/non_existent_page')
    assert response.status_code == 404
    assert response.get_json() == {"ok": False, "message": "Not found"}


def test_405_is_json(client):
    response = client.delete('/api/payroll/calculate')
    assert response.status_code == 405
    assert response.get_json()["ok"] is False


def test_tax_brackets_endpoint(client, employee):
    response = client.get('/api/tax/brackets?tableType=MONTHLY&dependents=1&taxableIncome=310000')
    body = response.get_json()
    assert response.status_code == 200
    assert body["data"][0]["inputTax"] == 630


def test_tax_brackets_invalid_query(client, flask_app):
    response = client.get('/api/tax/brackets?tableType=WEEKLY&dependents=-1')
    assert response.status_code == 400
    body = response.get_json()
    assert body["message"] == "Invalid query parameters"
    assert [i["path"] for i in body["issues"]] == [["tableType"], ["dependents"]]


def test_resident_tax_import_endpoint(client, employee):
    csv_text = "employeeCode,fiscalYear,annualTax\nE001,2025,120000"
    response = client.post(
        '/api/resident-tax/import',
        data=json.dumps({"csv": csv_text, "commit": True}),
        content_type="application/json",
    )
    assert response.status_code == 200
    assert response.get_json()["data"][0]["status"] == "CREATED"

    notices = client.get(f'/api/resident-tax/notice?employeeId={employee.id}').get_json()["data"]
    assert [n["fiscalYear"] for n in notices] == [2025, 2024]


def test_resident_tax_import_csv_error(client, flask_app):
    response = client.post(
        '/api/resident-tax/import',
        data=json.dumps({"csv": "employeeCode,fiscalYear,annualTax\nE001,abc,1000"}),
        content_type="application/json",
    )
    assert response.status_code == 400
    issue = response.get_json()["issues"][0]
    assert issue["path"] == ["csv", 1]
    assert issue["message"] == "1 行目: fiscalYear が数値ではありません"


def test_resident_tax_notice_requires_employee(client, flask_app):
    response = client.get('/api/resident-tax/notice?employeeId=abc')
    assert response.status_code == 400


def test_standard_remuneration_endpoint(client, employee):
    response = client.post(
        '/api/standard-remuneration/evaluate',
        data=json.dumps({"employeeId": employee.id, "referenceDate": "2024-06-30T00:00:00Z"}),
        content_type="application/json",
    )
    body = response.get_json()
    assert response.status_code == 200
    assert body["data"]["reference"] == "2024-06"
    assert body["data"]["evaluation"]["averageRemuneration"] == 350000


def test_standard_remuneration_unknown_employee(client, flask_app):
    response = client.post(
        '/api/standard-remuneration/evaluate',
        data=json.dumps({"employeeId": 404, "referenceDate": "2024-06-30"}),
        content_type="application/json",
    )
    assert response.status_code == 404
