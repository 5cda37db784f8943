"""
HTTP API blueprints for the shopper rewards service.
"""
