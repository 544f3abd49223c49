"""
Helpdesk core REST API for tickets and their authors
"""

__version__ = "0.1.0"
