"""
session_signup - Conference session signup and timesheet automation

Synchronizes a conference setup sheet with a Google Calendar and a Google
Form, invites registrants to the sessions they choose, and computes payroll
totals and approval notifications for a timesheet sheet.
"""

__version__ = "0.3.0"
