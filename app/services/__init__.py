"""
Payroll Back Office - Services Package

Business logic services. Import each service from its own module.
"""
