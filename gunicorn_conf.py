import multiprocessing
import os

# Gunicorn config
bind = os.getenv("GUNICORN_BIND", "0.0.0.0:8000")  # Match this port in your ALB target group
workers = int(os.getenv("GUNICORN_WORKERS", multiprocessing.cpu_count() * 2 + 1))
worker_class = "uvicorn.workers.UvicornWorker"
wsgi_app = "app.main:app"
loglevel = "info"
accesslog = "/var/log/gunicorn/access.log"
errorlog = "/var/log/gunicorn/error.log"
