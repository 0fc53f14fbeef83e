"""
FastAPI routers for the migration service, one module per resource.
"""
