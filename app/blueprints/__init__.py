"""
Safety Training LMS — Data Layer
Blueprint registry.
"""
