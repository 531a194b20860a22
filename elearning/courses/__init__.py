"""
E-Learning Courses Package

Course catalogue models. Courses are read-only for the payment subsystem,
which uses them to validate amounts and to populate invoices and emails.

Author: DSP Development Team
Version: 1.1.0
"""
