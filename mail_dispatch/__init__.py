"""
Mail Dispatch — send one fixed email to many recipients concurrently.

Recipients, attachments, and SMTP credentials come from a JSON settings
file; every recipient gets exactly one reported send outcome.
"""

__version__ = "0.1.0"
