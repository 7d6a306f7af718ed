"""
デモデータ投入スクリプト

給与項目・保険料率・源泉税額表のサンプルと、従業員 E001 (山田 太郎) の
社会保険・税区分・手当・報酬スナップショット・住民税決定通知、
旅のしおりのデモ (osaka-birthday-adventure) を登録します。

使用法:
  python scripts/seed_demo_data.py            # 未登録ならテーブル作成して投入
  python scripts/seed_demo_data.py --reset    # 既存データを削除してから投入
"""
import argparse
import logging
import os
import sys
from datetime import date
from decimal import Decimal

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app import app  # noqa: E402
from models import (  # noqa: E402
    Employee,
    EmployeeAllowance,
    EmployeeDeduction,
    EmployeePayrollMaster,
    EmployeeSocialInsurance,
    EmployeeTaxProfile,
    IncomeTaxBracket,
    InsuranceRate,
    Mission,
    MonthlyRemunerationSnapshot,
    PayrollCalculation,
    PayrollComponent,
    PayrollItemDefinition,
    PayrollRun,
    Photo,
    ResidentTaxAllocation,
    ResidentTaxNotice,
    Spot,
    TaxWithholdingHistory,
    Trip,
    db,
)
from services.resident_tax_service import ResidentTaxCsvRow, build_schedule  # noqa: E402

logger = logging.getLogger(__name__)

ITEM_DEFINITIONS = [
    # code, name, category, taxable, social_insurance, employment_insurance
    ("BASE_SALARY", "基本給", "EARNING", True, True, True),
    ("COMMUTE_ALLOWANCE", "通勤手当", "ALLOWANCE", False, False, False),
    ("HOUSING_ALLOWANCE", "住宅手当", "ALLOWANCE", True, True, False),
    ("INCOME_TAX", "源泉所得税", "TAX", False, False, False),
    ("RESIDENT_TAX", "住民税", "TAX", False, False, False),
]

INSURANCE_RATES = [
    dict(insurance_type="HEALTH", grade=20, threshold_low=290000, threshold_high=310000,
         employee_rate=Decimal("0.0495"), employer_rate=Decimal("0.0495"), effective_from=date(2024, 3, 1)),
    dict(insurance_type="PENSION", grade=20, threshold_low=290000, threshold_high=310000,
         employee_rate=Decimal("0.0915"), employer_rate=Decimal("0.0915"), effective_from=date(2024, 3, 1)),
    dict(insurance_type="NURSING", employee_rate=Decimal("0.004"), employer_rate=Decimal("0.004"),
         effective_from=date(2024, 3, 1)),
    dict(insurance_type="EMPLOYMENT", employee_rate=Decimal("0.003"), employer_rate=Decimal("0.006"),
         effective_from=date(2024, 4, 1)),
    dict(insurance_type="WORKERS", business_category="IT_SERVICES", employee_rate=Decimal("0"),
         employer_rate=Decimal("0.0025"), effective_from=date(2024, 4, 1)),
]

TAX_BRACKETS = [
    # table_type, dependents, lower, upper, tax
    ("MONTHLY", 0, 0, 304999, 0),
    ("MONTHLY", 0, 305000, 349999, 1530),
    ("MONTHLY", 1, 305000, 349999, 630),
    ("BONUS", 0, 0, 1000000, 102000),
]

SNAPSHOT_OVERTIME = {4: 10000, 5: 12000, 6: 8000}


def reset_data():
    """投入対象のテーブルを子→親の順に空にする"""
    for model in (
        PayrollComponent, PayrollCalculation, PayrollRun,
        ResidentTaxAllocation, EmployeePayrollMaster, ResidentTaxNotice,
        MonthlyRemunerationSnapshot, TaxWithholdingHistory,
        EmployeeAllowance, EmployeeDeduction,
        EmployeeSocialInsurance, EmployeeTaxProfile, Employee,
        InsuranceRate, IncomeTaxBracket, PayrollItemDefinition,
        Photo, Mission, Spot, Trip,
    ):
        model.query.delete()
    db.session.commit()


def seed_demo_data():
    """デモデータを投入して従業員 E001 を返す"""
    items = {}
    for code, name, category, taxable, si, ei in ITEM_DEFINITIONS:
        item = PayrollItemDefinition(
            code=code, name=name, category=category, taxable=taxable,
            social_insurance_applicable=si, employment_insurance_applicable=ei,
        )
        db.session.add(item)
        items[code] = item

    for rate in INSURANCE_RATES:
        db.session.add(InsuranceRate(**rate))

    for table_type, dependents, lower, upper, tax in TAX_BRACKETS:
        db.session.add(IncomeTaxBracket(
            table_type=table_type, dependents=dependents,
            lower_bound=lower, upper_bound=upper, tax_amount=tax, deduction=0,
            effective_from=date(2023, 1, 1),
        ))

    employee = Employee(
        employee_code="E001",
        last_name="山田",
        first_name="太郎",
        last_name_kana="ヤマダ",
        first_name_kana="タロウ",
        display_name="山田 太郎",
        email="taro.yamada@example.com",
        hire_date=date(2020, 4, 1),
        social_insurance_profile=EmployeeSocialInsurance(
            standard_monthly_remuneration=300000,
            health_insurance_grade=20,
            nursing_care_applicable=True,
            employment_insurance_applicable=True,
            workers_compensation_class="IT_SERVICES",
            effective_from=date(2020, 4, 1),
        ),
        tax_profile=EmployeeTaxProfile(
            withholding_type="BASIC",
            dependents_count=1,
            has_spouse_exemption=False,
            resident_tax_method="SPECIAL_COLLECTION",
            effective_from=date(2020, 4, 1),
        ),
    )
    db.session.add(employee)
    db.session.flush()

    db.session.add_all([
        EmployeeAllowance(
            employee_id=employee.id, item=items["COMMUTE_ALLOWANCE"], amount=20000,
            frequency="MONTHLY", taxable_override=False, social_insurance_override=False,
            start_date=date(2020, 4, 1),
        ),
        EmployeeAllowance(
            employee_id=employee.id, item=items["HOUSING_ALLOWANCE"], amount=30000,
            frequency="MONTHLY", start_date=date(2020, 4, 1),
        ),
        TaxWithholdingHistory(
            employee_id=employee.id, table_type="MONTHLY", dependents=1,
            taxable_income=300000, tax_withheld=8000, effective_date=date(2024, 4, 1),
        ),
    ])

    for month, overtime in SNAPSHOT_OVERTIME.items():
        db.session.add(MonthlyRemunerationSnapshot(
            employee_id=employee.id, year=2024, month=month,
            total_days=20, total_hours=160,
            base_salary=300000, allowance_total=50000, overtime_total=overtime,
            taxable_income=350000 + overtime, social_insurance_total=60000,
            standard_monthly_remuneration=350000,
        ))

    row = ResidentTaxCsvRow(
        employee_code="E001", fiscal_year=2024, annual_tax=96000,
        bonus_withholding=20000, start_month=6, remarks="サンプルデータ",
    )
    notice = ResidentTaxNotice(
        employee_id=employee.id, fiscal_year=2024, start_month=6,
        annual_tax=96000, bonus_withholding=20000, remarks=row.remarks,
        allocations=[
            ResidentTaxAllocation(
                year=a["year"], month=a["month"], base_amount=a["baseAmount"],
                bonus_amount=a.get("bonusAmount"), pay_run_type=a["payRunType"],
            )
            for a in build_schedule(row)
        ],
    )
    db.session.add(notice)
    db.session.flush()

    employee.payroll_master = EmployeePayrollMaster(
        salary_type="MONTHLY",
        base_salary=300000,
        overtime_divisor=160,
        overtime_multiplier=Decimal("1.25"),
        resident_tax_notice_id=notice.id,
    )
    db.session.commit()

    logger.info("Demo data seeded: employee=%s", employee.id)
    return employee


DEMO_TRIP_SPOTS = [
    dict(
        name="ユニバーサル・スタジオ・ジャパン", day_label="Day 1", date_label="May 3", time="09:00",
        location="大阪市此花区", address="大阪府大阪市此花区桜島2-1-33",
        lat=34.6654, lng=135.4323, map_x=22.0, map_y=58.0, arrival_points=50,
        headline="朝一番のパークへ", memory_body="開園と同時に入場して、一番乗りのアトラクションへ。",
        message="お誕生日おめでとう！",
        missions=[
            dict(title="ゲート前で記念撮影", type="PHOTO", reward_points=30,
                 description="地球儀の前で二人の写真を撮ろう。", photo_prompt="地球儀と一緒に"),
            dict(title="入場チェックイン", type="CHECKIN", reward_points=20,
                 description="ゲートを通ったらチェックイン。"),
        ],
        photos=[
            dict(image_url="/memories/HEIFtoJPEG/IMG_0490 2.jpg", alt="パークのゲート", caption="開園直後"),
            dict(image_url="/memories/usj-night.JPG", alt="夜のパーク"),
        ],
    ),
    dict(
        name="大阪城", day_label="Day 2", date_label="May 4", time="10:30",
        location="大阪市中央区", address="大阪府大阪市中央区大阪城1-1",
        lat=34.6873, lng=135.5262, map_x=64.0, map_y=40.0, arrival_points=40,
        headline="天守閣から街を見下ろす", memory_body="西の丸庭園を散歩してから天守閣へ。",
        message="次の一年もよろしくね。",
        missions=[
            dict(title="石垣クエスト", type="QUEST", reward_points=25,
                 description="一番大きな石 (蛸石) を探そう。", checklist_label="蛸石を見つけた"),
        ],
        photos=[],
    ),
]


def seed_demo_trip():
    """旅のしおりのデモ (osaka-birthday-adventure) を投入して Trip を返す"""
    trip = Trip(
        slug="osaka-birthday-adventure",
        title="大阪バースデートリップ",
        subtitle="二人で巡る三日間",
        dedication="いつもありがとう。",
        trip_dates="5/3 - 5/5",
        base_location="大阪",
        hero_image="/memories/trip-hero-usj.jpg",
        giver="Ken",
        receiver="Yui",
    )
    db.session.add(trip)

    for order_index, values in enumerate(DEMO_TRIP_SPOTS):
        values = dict(values)
        missions = values.pop("missions")
        photos = values.pop("photos")
        spot = Spot(order_index=order_index, note="", unlock_radius_meters=120, **values)
        spot.missions = [Mission(**m) for m in missions]
        spot.photos = [Photo(order_index=i, **p) for i, p in enumerate(photos)]
        trip.spots.append(spot)

    db.session.commit()
    logger.info("Demo trip seeded: slug=%s", trip.slug)
    return trip


def main():
    parser = argparse.ArgumentParser(description="給与計算のデモデータを投入します")
    parser.add_argument("--reset", action="store_true", help="既存データを削除してから投入")
    args = parser.parse_args()

    with app.app_context():
        db.create_all()
        if args.reset:
            reset_data()
        elif Employee.query.filter_by(employee_code="E001").first():
            print("E001 は登録済みです。--reset で再投入できます。")
            return
        employee = seed_demo_data()
        if Trip.query.filter_by(slug="osaka-birthday-adventure").first() is None:
            seed_demo_trip()
        print(f"デモデータを投入しました (employee_id={employee.id})")


if __name__ == "__main__":
    main()
