"""住民税 (特別徴収) 決定通知の CSV 取込と月割りスケジュール作成"""
import csv
import io
import logging
import math
from dataclasses import dataclass
from typing import Optional

from flask import current_app

from models import Employee, ResidentTaxAllocation, ResidentTaxNotice, db
from services.exceptions import ResidentTaxCsvError

logger = logging.getLogger(__name__)

REQUIRED_HEADERS = ("employeeCode", "fiscalYear", "annualTax")


@dataclass
class ResidentTaxCsvRow:
    employee_code: str
    fiscal_year: int
    annual_tax: float
    bonus_withholding: Optional[float] = None
    start_month: Optional[int] = None
    remarks: Optional[str] = None


def _to_number(value):
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number):
        return None
    return int(number) if number.is_integer() else number


def _to_int(value):
    number = _to_number(value)
    if number is None or not float(number).is_integer():
        return None
    return int(number)


def parse_resident_tax_csv(csv_text):
    """CSV テキストを行データに変換する。

    1行目はヘッダー (employeeCode, fiscalYear, annualTax 必須 /
    bonusWithholding, startMonth, remarks 任意)。空行は無視する。

    Raises:
        ResidentTaxCsvError: ヘッダー不足・値の形式エラー
    """
    lines = [line.strip() for line in (csv_text or "").splitlines()]
    lines = [line for line in lines if line]
    if not lines:
        return []

    reader = csv.reader(io.StringIO("\n".join(lines)))
    headers = [h.strip() for h in next(reader)]
    for header in REQUIRED_HEADERS:
        if header not in headers:
            raise ResidentTaxCsvError(f"CSV のヘッダーに {header} が含まれていません")

    rows = []
    for index, cells in enumerate(reader, start=1):
        cells = [c.strip() for c in cells]
        record = {h: (cells[i] if i < len(cells) else "") for i, h in enumerate(headers)}

        fiscal_year = _to_int(record["fiscalYear"])
        annual_tax = _to_number(record["annualTax"])

        if not record["employeeCode"]:
            raise ResidentTaxCsvError(f"{index} 行目: employeeCode が空です", row=index)
        if fiscal_year is None:
            raise ResidentTaxCsvError(f"{index} 行目: fiscalYear が数値ではありません", row=index)
        if annual_tax is None:
            raise ResidentTaxCsvError(f"{index} 行目: annualTax が数値ではありません", row=index)

        start_month = None
        if record.get("startMonth"):
            start_month = _to_int(record["startMonth"])
            if start_month is None or not 1 <= start_month <= 12:
                raise ResidentTaxCsvError(f"{index} 行目: startMonth は 1〜12 で指定してください", row=index)

        bonus = None
        if record.get("bonusWithholding"):
            bonus = _to_number(record["bonusWithholding"])
            if bonus is None:
                raise ResidentTaxCsvError(
                    f"{index} 行目: bonusWithholding が数値ではありません", row=index,
                )

        rows.append(ResidentTaxCsvRow(
            employee_code=record["employeeCode"],
            fiscal_year=fiscal_year,
            annual_tax=annual_tax,
            bonus_withholding=bonus,
            start_month=start_month,
            remarks=record.get("remarks") or None,
        ))
    return rows


def distribute(amount, periods):
    """amount を periods 回に分割する。端数は先頭の回から1円ずつ上乗せ。"""
    base = math.floor(amount / periods)
    remainder = round(amount - base * periods)
    result = []
    for _ in range(periods):
        if remainder > 0:
            remainder -= 1
            result.append(base + 1)
        else:
            result.append(base)
    return result


def build_schedule(row, default_start_month=6, periods=12):
    """開始月から12か月分の通常徴収額と、賞与徴収分の割当を作る"""
    start_month = row.start_month or default_start_month
    monthly_base = max(0, row.annual_tax - (row.bonus_withholding or 0))

    allocations = []
    for index, amount in enumerate(distribute(monthly_base, periods)):
        month = (start_month - 1 + index) % 12 + 1
        year_offset = 0 if month >= start_month else 1
        allocations.append({
            "month": month,
            "year": row.fiscal_year + year_offset,
            "baseAmount": int(round(amount)),
            "payRunType": "REGULAR",
        })

    if row.bonus_withholding and row.bonus_withholding > 0:
        allocations.append({
            "month": start_month,
            "year": row.fiscal_year,
            "baseAmount": 0,
            "bonusAmount": int(round(row.bonus_withholding)),
            "payRunType": "BONUS",
        })
    return allocations


def _result(row, status, allocations, notice_id=None, message=None):
    item = {
        "employeeCode": row.employee_code,
        "fiscalYear": row.fiscal_year,
        "status": status,
        "allocations": allocations,
    }
    if notice_id is not None:
        item["noticeId"] = notice_id
    if message:
        item["message"] = message
    return item


def _save_notice(employee, row, allocations, start_month):
    notice = ResidentTaxNotice.query.filter_by(
        employee_id=employee.id, fiscal_year=row.fiscal_year,
    ).first()
    existed = notice is not None

    if notice is None:
        notice = ResidentTaxNotice(employee_id=employee.id, fiscal_year=row.fiscal_year)
        db.session.add(notice)

    notice.start_month = start_month
    notice.annual_tax = int(round(row.annual_tax))
    notice.bonus_withholding = (
        int(round(row.bonus_withholding)) if row.bonus_withholding else None
    )
    notice.remarks = row.remarks

    # 既存の割当は差し替え
    notice.allocations = [
        ResidentTaxAllocation(
            year=a["year"],
            month=a["month"],
            base_amount=a["baseAmount"],
            bonus_amount=a.get("bonusAmount"),
            pay_run_type=a["payRunType"],
        )
        for a in allocations
    ]
    db.session.flush()
    return notice, existed


def import_resident_tax_notices(csv_text, commit=False):
    """CSV を取り込む。commit=False ならプレビューのみ。

    Returns:
        list of dict: 行ごとの結果 (status は PREVIEW / CREATED / UPDATED)
    """
    rows = parse_resident_tax_csv(csv_text)
    if not rows:
        return []

    cfg = current_app.config
    default_start = cfg.get("RESIDENT_TAX_START_MONTH", 6)
    periods = cfg.get("RESIDENT_TAX_PERIODS", 12)

    results = []
    try:
        for row in rows:
            employee = Employee.query.filter_by(employee_code=row.employee_code).first()
            if employee is None:
                results.append(_result(row, "PREVIEW", [], message="該当する従業員が見つかりません"))
                continue

            allocations = build_schedule(row, default_start, periods)
            if not commit:
                results.append(_result(row, "PREVIEW", allocations))
                continue

            notice, existed = _save_notice(
                employee, row, allocations, row.start_month or default_start,
            )
            results.append(_result(
                row, "UPDATED" if existed else "CREATED", allocations, notice_id=notice.id,
            ))

        if commit:
            db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    if commit:
        logger.info("Resident tax notices imported: rows=%d", len(results))
    return results


def list_resident_tax_notices(employee_id):
    notices = (
        ResidentTaxNotice.query
        .filter_by(employee_id=employee_id)
        .order_by(ResidentTaxNotice.fiscal_year.desc())
        .all()
    )
    return [notice.to_dict() for notice in notices]
