"""
Scripts Package.

This package contains operational scripts for the dashboard.

Scripts:
- bootstrap_db: Create and seed the SQL score store
"""

