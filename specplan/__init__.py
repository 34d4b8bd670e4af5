"""
Schema-driven API test plan generator and runner.
"""
__version__ = "0.1.0"
