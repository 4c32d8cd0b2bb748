"""HTTP routers for accounts, payments and activities."""

from ledger_api.routes import accounts, activities, payments

routers = [accounts.router, payments.router, activities.router]

__all__ = ["routers"]
