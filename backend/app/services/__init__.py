"""
Invoicing services.

WHY: Totals, numbering, lifecycle, dashboard and PDF rendering live here,
between the API routers and the DAOs (API -> Service -> DAO).
"""
