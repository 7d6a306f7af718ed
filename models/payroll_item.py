from datetime import datetime

from models._base import db

# 給与項目の区分
PAYROLL_ITEM_CATEGORIES = {
    "EARNING",
    "ALLOWANCE",
    "BONUS",
    "SOCIAL_INSURANCE",
    "TAX",
    "DEDUCTION",
}
ALLOWANCE_FREQUENCIES = {"ONE_TIME", "DAILY", "WEEKLY", "BIWEEKLY", "MONTHLY", "YEARLY"}


class PayrollItemDefinition(db.Model):
    __tablename__ = "payroll_item_definitions"

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    code = db.Column(db.String(50), nullable=False, unique=True, index=True)
    name = db.Column(db.String(100), nullable=False)
    category = db.Column(db.String(20), nullable=False)
    taxable = db.Column(db.Boolean, nullable=False, default=True)
    social_insurance_applicable = db.Column(db.Boolean, nullable=False, default=True)
    employment_insurance_applicable = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=datetime.now)

    def to_dict(self):
        return {
            "code": self.code,
            "name": self.name,
            "category": self.category,
            "taxable": self.taxable,
        }


class EmployeeAllowance(db.Model):
    """従業員ごとの固定手当 (適用期間つき)"""
    __tablename__ = "employee_allowances"
    __table_args__ = (
        db.Index("ix_employee_allowance_period", "employee_id", "start_date", "end_date"),
    )

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    employee_id = db.Column(
        db.Integer, db.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False,
    )
    item_id = db.Column(
        db.Integer, db.ForeignKey("payroll_item_definitions.id", ondelete="RESTRICT"), nullable=False,
    )
    amount = db.Column(db.Integer, nullable=False, default=0)
    frequency = db.Column(db.String(10), nullable=False, default="MONTHLY")
    taxable_override = db.Column(db.Boolean, nullable=True)  # null → 項目定義に従う
    social_insurance_override = db.Column(db.Boolean, nullable=True)
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=True)

    employee = db.relationship("Employee", back_populates="allowances")
    item = db.relationship("PayrollItemDefinition")

    @property
    def taxable(self):
        if self.taxable_override is not None:
            return self.taxable_override
        return self.item.taxable


class EmployeeDeduction(db.Model):
    """従業員ごとの固定控除 (社宅費・財形など)"""
    __tablename__ = "employee_deductions"
    __table_args__ = (
        db.Index("ix_employee_deduction_period", "employee_id", "start_date", "end_date"),
    )

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    employee_id = db.Column(
        db.Integer, db.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False,
    )
    item_id = db.Column(
        db.Integer, db.ForeignKey("payroll_item_definitions.id", ondelete="RESTRICT"), nullable=False,
    )
    amount = db.Column(db.Integer, nullable=False, default=0)
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=True)

    employee = db.relationship("Employee", back_populates="deductions")
    item = db.relationship("PayrollItemDefinition")
