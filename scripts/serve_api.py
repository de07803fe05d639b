from __future__ import annotations

import uvicorn

from dataalchemist.web.api import app

# --- Server configuration ---
HOST = "127.0.0.1"
PORT = 8001
LOG_LEVEL = "info"


def main() -> int:
    print(f"[API] Serving on http://{HOST}:{PORT}")
    uvicorn.run(app, host=HOST, port=PORT, log_level=LOG_LEVEL)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
