import os
import sys

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

# app.main refuses to start without explicit CORS origins
os.environ.setdefault("ALLOWED_ORIGINS", "http://testserver")
os.environ.setdefault("ALLOW_CREDENTIALS", "false")
# Tests share one client IP; keep the per-IP throw limit out of the way
os.environ.setdefault("DISABLE_MATCH_RATE_LIMITS", "true")

