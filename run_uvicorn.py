# run_uvicorn.py
# Launcher used for debugging in VS Code (no uvicorn reload subprocess).
import os

# Safe defaults so import-time DB code doesn't explode if env vars are missing.
os.environ.setdefault("DATABASE_URL", "sqlite:///./dev_local.db")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")
os.environ.setdefault("HOLD_POLL_INTERVAL_SECONDS", "5")

from cinebook.main import app  # noqa: E402

if __name__ == "__main__":
    import uvicorn
    # IMPORTANT: reload=False so the hold timer worker runs in a single process.
    uvicorn.run(app, host="127.0.0.1", port=8000, reload=False)
