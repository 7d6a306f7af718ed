from datetime import datetime

from models._base import db


class PayrollRun(db.Model):
    __tablename__ = "payroll_runs"
    __table_args__ = (db.Index("ix_payroll_run_pay_date", "pay_date"),)

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    pay_date = db.Column(db.Date, nullable=False)
    period_start = db.Column(db.Date, nullable=False)
    period_end = db.Column(db.Date, nullable=False)
    run_type = db.Column(db.String(10), nullable=False, default="REGULAR")
    status = db.Column(db.String(10), nullable=False, default="DRAFT")
    created_at = db.Column(db.DateTime, default=datetime.now)

    calculations = db.relationship(
        "PayrollCalculation", back_populates="run", cascade="all, delete-orphan", lazy=True,
    )

    def to_dict(self):
        return {
            "id": self.id,
            "payDate": self.pay_date.strftime("%Y-%m-%d"),
            "periodStart": self.period_start.strftime("%Y-%m-%d"),
            "periodEnd": self.period_end.strftime("%Y-%m-%d"),
            "runType": self.run_type,
            "status": self.status,
            "employeeCount": len(self.calculations),
        }


class PayrollCalculation(db.Model):
    """給与計算結果 (実行 × 従業員)"""
    __tablename__ = "payroll_calculations"
    __table_args__ = (
        db.UniqueConstraint("run_id", "employee_id", name="uq_payroll_calculation_run_employee"),
    )

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    run_id = db.Column(
        db.Integer, db.ForeignKey("payroll_runs.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    employee_id = db.Column(
        db.Integer, db.ForeignKey("employees.id", ondelete="RESTRICT"), nullable=False, index=True,
    )
    gross_pay = db.Column(db.Float, nullable=False, default=0)
    taxable_income = db.Column(db.Float, nullable=False, default=0)
    social_insurance_total = db.Column(db.Integer, nullable=False, default=0)
    income_tax = db.Column(db.Integer, nullable=False, default=0)
    resident_tax = db.Column(db.Integer, nullable=False, default=0)
    net_pay = db.Column(db.Float, nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=datetime.now)

    run = db.relationship("PayrollRun", back_populates="calculations")
    employee = db.relationship("Employee")
    components = db.relationship(
        "PayrollComponent",
        back_populates="calculation",
        cascade="all, delete-orphan",
        order_by="PayrollComponent.position",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "employeeId": self.employee_id,
            "employeeCode": self.employee.employee_code if self.employee else None,
            "grossPay": self.gross_pay,
            "taxableIncome": self.taxable_income,
            "socialInsuranceTotal": self.social_insurance_total,
            "incomeTax": self.income_tax,
            "residentTax": self.resident_tax,
            "netPay": self.net_pay,
            "components": [c.to_dict() for c in self.components],
        }


class PayrollComponent(db.Model):
    __tablename__ = "payroll_components"

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    calculation_id = db.Column(
        db.Integer, db.ForeignKey("payroll_calculations.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    position = db.Column(db.Integer, nullable=False, default=0)
    code = db.Column(db.String(50), nullable=False)
    name = db.Column(db.String(100), nullable=False)
    category = db.Column(db.String(20), nullable=False)
    employee_portion = db.Column(db.Float, nullable=False, default=0)
    employer_portion = db.Column(db.Float, nullable=True)

    calculation = db.relationship("PayrollCalculation", back_populates="components")

    def to_dict(self):
        item = {
            "code": self.code,
            "name": self.name,
            "category": self.category,
            "employeePortion": self.employee_portion,
        }
        if self.employer_portion is not None:
            item["employerPortion"] = self.employer_portion
        return item
