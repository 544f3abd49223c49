"""
Helpdesk core REST API package
"""
