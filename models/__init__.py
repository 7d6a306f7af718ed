from models._base import db
from models.employee import (
    Employee,
    EmployeePayrollMaster,
    EmployeeSocialInsurance,
    EmployeeTaxProfile,
)
from models.payroll_item import EmployeeAllowance, EmployeeDeduction, PayrollItemDefinition
from models.insurance import InsuranceRate, MonthlyRemunerationSnapshot
from models.tax import (
    IncomeTaxBracket,
    ResidentTaxAllocation,
    ResidentTaxNotice,
    TaxWithholdingHistory,
)
from models.payroll_run import PayrollCalculation, PayrollComponent, PayrollRun
from models.trip import Mission, Photo, Spot, Trip

__all__ = [
    "db",
    "Employee",
    "EmployeeSocialInsurance",
    "EmployeeTaxProfile",
    "EmployeePayrollMaster",
    "PayrollItemDefinition",
    "EmployeeAllowance",
    "EmployeeDeduction",
    "InsuranceRate",
    "MonthlyRemunerationSnapshot",
    "IncomeTaxBracket",
    "TaxWithholdingHistory",
    "ResidentTaxNotice",
    "ResidentTaxAllocation",
    "PayrollRun",
    "PayrollCalculation",
    "PayrollComponent",
    "Trip",
    "Spot",
    "Mission",
    "Photo",
]
