"""
Gunicorn configuration.
"""
import os

bind = f"0.0.0.0:{os.getenv('PORT', '8080')}"

# Worker configuration
workers = int(os.getenv('GUNICORN_WORKERS', '2'))
worker_class = 'sync'
worker_connections = 1000
timeout = 120  # B2C dispatch makes one Safaricom call per selected reward
keepalive = 5

# Logging
accesslog = '-'  # stdout
errorlog = '-'   # stderr
loglevel = os.getenv('LOG_LEVEL', 'info')
capture_output = True

proc_name = 'shopper-rewards'

preload_app = True

graceful_timeout = 30


def on_starting(server):
    print("[Gunicorn] Starting shopper rewards server...")


def on_exit(server):
    print("[Gunicorn] Shopper rewards server shutting down...")
