from datetime import datetime

from models._base import db

INCOME_TAX_TABLE_TYPES = {"MONTHLY", "BONUS"}
PAY_RUN_TYPES = {"REGULAR", "BONUS"}


class IncomeTaxBracket(db.Model):
    """源泉徴収税額表の1行 (表区分 × 扶養人数 × 課税対象額の範囲)"""
    __tablename__ = "income_tax_brackets"
    __table_args__ = (
        db.Index("ix_income_tax_bracket_lookup", "table_type", "dependents", "lower_bound"),
    )

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    table_type = db.Column(db.String(10), nullable=False)
    dependents = db.Column(db.Integer, nullable=False, default=0)
    lower_bound = db.Column(db.Integer, nullable=False)
    upper_bound = db.Column(db.Integer, nullable=True)  # null → 上限なし
    tax_amount = db.Column(db.Integer, nullable=False, default=0)
    deduction = db.Column(db.Integer, nullable=False, default=0)
    effective_from = db.Column(db.Date, nullable=False)


class TaxWithholdingHistory(db.Model):
    __tablename__ = "tax_withholding_histories"

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    employee_id = db.Column(
        db.Integer, db.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    table_type = db.Column(db.String(10), nullable=False, default="MONTHLY")
    dependents = db.Column(db.Integer, nullable=False, default=0)
    taxable_income = db.Column(db.Integer, nullable=False, default=0)
    tax_withheld = db.Column(db.Integer, nullable=False, default=0)
    effective_date = db.Column(db.Date, nullable=False)


class ResidentTaxNotice(db.Model):
    """特別徴収税額の決定通知 (従業員 × 年度)"""
    __tablename__ = "resident_tax_notices"
    __table_args__ = (
        db.UniqueConstraint("employee_id", "fiscal_year", name="uq_resident_tax_notice_year"),
    )

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    employee_id = db.Column(
        db.Integer, db.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    fiscal_year = db.Column(db.Integer, nullable=False)
    start_month = db.Column(db.Integer, nullable=False, default=6)
    annual_tax = db.Column(db.Integer, nullable=False, default=0)
    bonus_withholding = db.Column(db.Integer, nullable=True)
    remarks = db.Column(db.String(200), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.now)
    updated_at = db.Column(db.DateTime, default=datetime.now, onupdate=datetime.now)

    allocations = db.relationship(
        "ResidentTaxAllocation",
        back_populates="notice",
        cascade="all, delete-orphan",
        order_by=lambda: [ResidentTaxAllocation.year, ResidentTaxAllocation.month],
    )

    def to_dict(self):
        return {
            "id": self.id,
            "employeeId": self.employee_id,
            "fiscalYear": self.fiscal_year,
            "startMonth": self.start_month,
            "annualTax": self.annual_tax,
            "bonusWithholding": self.bonus_withholding,
            "remarks": self.remarks,
            "allocations": [a.to_dict() for a in self.allocations],
        }


class ResidentTaxAllocation(db.Model):
    __tablename__ = "resident_tax_allocations"

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    notice_id = db.Column(
        db.Integer, db.ForeignKey("resident_tax_notices.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    year = db.Column(db.Integer, nullable=False)
    month = db.Column(db.Integer, nullable=False)
    base_amount = db.Column(db.Integer, nullable=False, default=0)
    bonus_amount = db.Column(db.Integer, nullable=True)
    pay_run_type = db.Column(db.String(10), nullable=False, default="REGULAR")

    notice = db.relationship("ResidentTaxNotice", back_populates="allocations")

    def to_dict(self):
        return {
            "year": self.year,
            "month": self.month,
            "baseAmount": self.base_amount,
            "bonusAmount": self.bonus_amount,
            "payRunType": self.pay_run_type,
        }
