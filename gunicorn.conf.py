"""
Gunicorn configuration for the routing rules service.

Env vars that override defaults:
  PORT     — TCP port to bind (default: 3000)
  WORKERS  — number of worker processes (default: 2)

Each worker runs its own prune loop (see PRUNE_INTERVAL_SECONDS); the sweep
is a single idempotent DELETE, so overlapping sweeps are harmless.
"""
import os

bind = f"0.0.0.0:{os.environ.get('PORT', '3000')}"

workers = int(os.environ.get("WORKERS", "2"))

# Each worker runs Uvicorn's ASGI event loop inside Gunicorn's process manager.
worker_class = "uvicorn.workers.UvicornWorker"

# Resolve calls come from a local reverse proxy over persistent connections.
keepalive = 5

timeout = 60

# Access log to stdout; application events are emitted by structlog.
loglevel = "info"
accesslog = "-"
errorlog = "-"
access_log_format = '%(h)s "%(r)s" %(s)s %(b)sB %(D)sµs'

graceful_timeout = 30
