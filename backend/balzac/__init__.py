"""
Balzac certification backend.

FastAPI application serving leveled French-language test sessions,
certifications, level purchases and administration.
"""

__version__ = "1.0.0"
