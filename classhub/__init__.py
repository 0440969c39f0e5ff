"""
ClassHub Backend Package
========================

Flask-based backend for the ClassHub worksheet hub.

Structure:
- routes/: API route blueprints
- services/: Worksheet state sync, persistence and grading services
- config.py: Configuration management
"""

__version__ = "1.0.0"
