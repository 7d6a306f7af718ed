from datetime import datetime

from models._base import db

INSURANCE_TYPES = {"HEALTH", "NURSING", "PENSION", "EMPLOYMENT", "WORKERS"}


class InsuranceRate(db.Model):
    """社会保険料率表。

    HEALTH / PENSION は等級と標準報酬の範囲 (threshold_low〜threshold_high) を持ち、
    NURSING / EMPLOYMENT は範囲なし、WORKERS は事業の種類 (business_category) で引く。
    """
    __tablename__ = "insurance_rates"
    __table_args__ = (
        db.Index("ix_insurance_rate_type_effective", "insurance_type", "effective_from"),
    )

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    insurance_type = db.Column(db.String(20), nullable=False)
    grade = db.Column(db.Integer, nullable=True)
    threshold_low = db.Column(db.Integer, nullable=True)
    threshold_high = db.Column(db.Integer, nullable=True)  # null → 上限なし
    employee_rate = db.Column(db.Numeric(8, 5), nullable=False, default=0)
    employer_rate = db.Column(db.Numeric(8, 5), nullable=False, default=0)
    business_category = db.Column(db.String(50), nullable=True)
    effective_from = db.Column(db.Date, nullable=False)
    effective_to = db.Column(db.Date, nullable=True)

    def to_dict(self):
        return {
            "id": self.id,
            "insuranceType": self.insurance_type,
            "grade": self.grade,
            "thresholdLow": self.threshold_low,
            "thresholdHigh": self.threshold_high,
            "employeeRate": float(self.employee_rate),
            "employerRate": float(self.employer_rate),
            "businessCategory": self.business_category,
            "effectiveFrom": self.effective_from.strftime("%Y-%m-%d"),
            "effectiveTo": self.effective_to.strftime("%Y-%m-%d") if self.effective_to else None,
        }


class MonthlyRemunerationSnapshot(db.Model):
    """月次の報酬実績 (算定基礎届・月額変更届の判定用)"""
    __tablename__ = "monthly_remuneration_snapshots"
    __table_args__ = (
        db.UniqueConstraint("employee_id", "year", "month", name="uq_remuneration_snapshot_month"),
    )

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    employee_id = db.Column(
        db.Integer, db.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    year = db.Column(db.Integer, nullable=False)
    month = db.Column(db.Integer, nullable=False)
    total_days = db.Column(db.Integer, nullable=True)
    total_hours = db.Column(db.Float, nullable=True)
    base_salary = db.Column(db.Integer, nullable=False, default=0)
    allowance_total = db.Column(db.Integer, nullable=False, default=0)
    overtime_total = db.Column(db.Integer, nullable=False, default=0)
    taxable_income = db.Column(db.Integer, nullable=True)
    social_insurance_total = db.Column(db.Integer, nullable=True)
    standard_monthly_remuneration = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.now)
