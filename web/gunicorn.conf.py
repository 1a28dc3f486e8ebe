import os


def cpu():
    return max(1, (os.cpu_count() or 1))


wsgi_app = "config.wsgi:application"
bind = os.getenv("GUNI_BIND", "0.0.0.0:8000")

# Processes (workers)
workers = int(os.getenv("GUNI_WORKERS", min(max(2, cpu() * 2), 8)))

# Threads per worker; order dispatch threads live in the same process
worker_class = "gthread"
threads = int(os.getenv("GTHREADS", "4"))

# Timeouts. Requests never wait on generation, but an inline dispatch mode does.
timeout = int(os.getenv("GUNI_TIMEOUT", "60"))
if os.getenv("ORDER_DISPATCH_MODE", "thread") == "inline":
    timeout = max(timeout, int(float(os.getenv("GENERATION_TIMEOUT_SECS", "120"))) + 30)
graceful_timeout = int(os.getenv("GUNI_GRACEFUL_TIMEOUT", "30"))
keepalive = int(os.getenv("GUNI_KEEPALIVE", "5"))

# Dispatch pools are per process; do not fork after creating one
preload_app = False
max_requests = int(os.getenv("GUNI_MAX_REQUESTS", "2000"))
max_requests_jitter = int(os.getenv("GUNI_MAX_REQUESTS_JITTER", "200"))

accesslog = "-"
errorlog = "-"
loglevel = os.getenv("GUNI_LOGLEVEL", "info")
