from datetime import datetime

from models._base import db

WITHHOLDING_TYPES = {"BASIC", "SECONDARY"}
RESIDENT_TAX_METHODS = {"SPECIAL_COLLECTION", "ORDINARY_COLLECTION"}
SALARY_TYPES = {"MONTHLY", "DAILY", "HOURLY"}


def _fmt_date(value):
    return value.strftime("%Y-%m-%d") if value else None


class Employee(db.Model):
    __tablename__ = "employees"

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    employee_code = db.Column(db.String(20), nullable=False, unique=True, index=True)
    last_name = db.Column(db.String(50), nullable=False)
    first_name = db.Column(db.String(50), nullable=False)
    last_name_kana = db.Column(db.String(50), default="")
    first_name_kana = db.Column(db.String(50), default="")
    display_name = db.Column(db.String(100), nullable=False, default="")
    email = db.Column(db.String(120), nullable=True)
    hire_date = db.Column(db.Date, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=datetime.now)
    updated_at = db.Column(db.DateTime, default=datetime.now, onupdate=datetime.now)

    social_insurance_profile = db.relationship(
        "EmployeeSocialInsurance", back_populates="employee", uselist=False,
        cascade="all, delete-orphan",
    )
    tax_profile = db.relationship(
        "EmployeeTaxProfile", back_populates="employee", uselist=False,
        cascade="all, delete-orphan",
    )
    payroll_master = db.relationship(
        "EmployeePayrollMaster", back_populates="employee", uselist=False,
        cascade="all, delete-orphan",
    )
    allowances = db.relationship("EmployeeAllowance", back_populates="employee", lazy=True)
    deductions = db.relationship("EmployeeDeduction", back_populates="employee", lazy=True)

    def to_dict(self):
        return {
            "id": self.id,
            "employeeCode": self.employee_code,
            "lastName": self.last_name,
            "firstName": self.first_name,
            "displayName": self.display_name or f"{self.last_name} {self.first_name}",
            "email": self.email,
            "hireDate": _fmt_date(self.hire_date),
            "isActive": self.is_active,
        }

    def to_detail_dict(self):
        result = self.to_dict()
        result["socialInsurance"] = (
            self.social_insurance_profile.to_dict() if self.social_insurance_profile else None
        )
        result["tax"] = self.tax_profile.to_dict() if self.tax_profile else None
        result["payrollMaster"] = self.payroll_master.to_dict() if self.payroll_master else None
        return result


class EmployeeSocialInsurance(db.Model):
    """社会保険の加入情報 (標準報酬月額・等級)"""
    __tablename__ = "employee_social_insurances"

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    employee_id = db.Column(
        db.Integer, db.ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False, unique=True,
    )
    standard_monthly_remuneration = db.Column(db.Integer, nullable=True)
    health_insurance_grade = db.Column(db.Integer, nullable=True)
    nursing_care_applicable = db.Column(db.Boolean, nullable=False, default=False)
    employment_insurance_applicable = db.Column(db.Boolean, nullable=False, default=True)
    workers_compensation_class = db.Column(db.String(50), nullable=True)
    effective_from = db.Column(db.Date, nullable=True)

    employee = db.relationship("Employee", back_populates="social_insurance_profile")

    def to_dict(self):
        return {
            "standardMonthlyRemuneration": self.standard_monthly_remuneration,
            "healthInsuranceGrade": self.health_insurance_grade,
            "nursingCareApplicable": self.nursing_care_applicable,
            "employmentInsuranceApplicable": self.employment_insurance_applicable,
            "workersCompensationClass": self.workers_compensation_class,
            "effectiveFrom": _fmt_date(self.effective_from),
        }


class EmployeeTaxProfile(db.Model):
    """源泉徴収・住民税の区分"""
    __tablename__ = "employee_tax_profiles"

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    employee_id = db.Column(
        db.Integer, db.ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False, unique=True,
    )
    withholding_type = db.Column(db.String(20), nullable=False, default="BASIC")  # 甲欄 / 乙欄
    dependents_count = db.Column(db.Integer, nullable=False, default=0)
    has_spouse_exemption = db.Column(db.Boolean, nullable=False, default=False)
    resident_tax_method = db.Column(db.String(30), nullable=False, default="SPECIAL_COLLECTION")
    effective_from = db.Column(db.Date, nullable=True)

    employee = db.relationship("Employee", back_populates="tax_profile")

    def to_dict(self):
        return {
            "withholdingType": self.withholding_type,
            "dependentsCount": self.dependents_count,
            "hasSpouseExemption": self.has_spouse_exemption,
            "residentTaxMethod": self.resident_tax_method,
            "effectiveFrom": _fmt_date(self.effective_from),
        }


class EmployeePayrollMaster(db.Model):
    """給与マスタ (基本給・時間外の計算条件)"""
    __tablename__ = "employee_payroll_masters"

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    employee_id = db.Column(
        db.Integer, db.ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False, unique=True,
    )
    salary_type = db.Column(db.String(10), nullable=False, default="MONTHLY")
    base_salary = db.Column(db.Integer, nullable=False, default=0)
    overtime_divisor = db.Column(db.Integer, nullable=True)
    overtime_multiplier = db.Column(db.Numeric(6, 4), nullable=True)
    resident_tax_notice_id = db.Column(
        db.Integer, db.ForeignKey("resident_tax_notices.id", ondelete="SET NULL"), nullable=True,
    )
    updated_at = db.Column(db.DateTime, default=datetime.now, onupdate=datetime.now)

    employee = db.relationship("Employee", back_populates="payroll_master")

    def to_dict(self):
        return {
            "salaryType": self.salary_type,
            "baseSalary": self.base_salary,
            "overtimeDivisor": self.overtime_divisor,
            "overtimeMultiplier": (
                float(self.overtime_multiplier) if self.overtime_multiplier is not None else None
            ),
            "residentTaxNoticeId": self.resident_tax_notice_id,
        }
