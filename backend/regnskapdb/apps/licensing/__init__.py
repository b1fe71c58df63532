"""
Licensing app

Seat-based license ledger: licensed-employee records per billing period,
monthly invoices with one main license line and one line per seat, the
seat-limit guard and the subscription summary.
"""
