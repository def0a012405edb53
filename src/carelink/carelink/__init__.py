"""CareLink scheduling package.

Organized by feature modules (shift_requests, shifts, timesheets, dashboard, ...)
with a thin Flask controller layer over service/repository layers.
"""
