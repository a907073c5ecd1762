"""
Business logic shared by the API routers.
"""
