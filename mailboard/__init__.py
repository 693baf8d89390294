"""
Mailboard Backend

A FastAPI backend for the Mailboard email-marketing dashboard.
Provides campaign send-state reconciliation and the Google OAuth
exchange used by the Sheets contact import.
"""

__version__ = "1.0.0"
