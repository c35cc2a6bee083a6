import multiprocessing, os

bind = "0.0.0.0:" + os.getenv("PORT", "5002")
workers = int(os.getenv("WEB_CONCURRENCY", str(max(2, multiprocessing.cpu_count()))))
threads = 2
timeout = 60
graceful_timeout = 30
keepalive = 5
accesslog = "-"
errorlog = "-"
wsgi_app = "aeroprep.wsgi:app"
