"""
Timeline engine tests.
"""
