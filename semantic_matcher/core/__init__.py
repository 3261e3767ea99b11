"""
Matcher orchestration, configuration and errors.
"""
