"""
API routers, one module per admin area.
"""
