from app.models.auth.user import User
from app.models.organization.pg import PG
from app.models.organization.branch import Branch
from app.models.staff.maintainer import Maintainer, maintainer_branches
from app.models.salary.salary import Salary
from app.models.salary.salary_payment import SalaryPayment


__all__ = [
    "User",
    "PG",
    "Branch",
    "Maintainer",
    "maintainer_branches",
    "Salary",
    "SalaryPayment",
]
