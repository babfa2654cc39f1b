from gatepass.main import app  # noqa: F401  (re-exported for "main:app")
from gatepass.core.config import settings

# ============================================================================
# MOVE THESE FUNCTIONS OUTSIDE if __name__ == "__main__" for Windows
# ============================================================================

def run_https():
    """Run HTTPS server on port 9105"""
    import uvicorn
    print("🔒 Starting HTTPS server on port 9105...")
    uvicorn.run(
        "main:app",  # Use string import
        host="0.0.0.0",
        port=9105,
        reload=False,
        log_level=settings.LOG_LEVEL.lower(),
        ssl_certfile="cert.pem",
        ssl_keyfile="key.pem"
    )

def run_http():
    """Run HTTP server on port 9106"""
    import uvicorn
    print("🚀 Starting HTTP server on port 9106...")
    uvicorn.run(
        "main:app",  # Use string import
        host="0.0.0.0",
        port=9106,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )

# ============================================================================

if __name__ == "__main__":
    import multiprocessing
    import sys

    # REQUIRED for Windows multiprocessing
    multiprocessing.freeze_support()

    if "--https" in sys.argv:
        print("🔒 Starting server in HTTPS mode...")
        run_https()
    elif "--dual" in sys.argv:
        print("🚀 Starting servers in DUAL mode (HTTP + HTTPS)...")

        # Use Process instead of Thread
        https_process = multiprocessing.Process(target=run_https)
        http_process = multiprocessing.Process(target=run_http)

        https_process.start()
        http_process.start()

        https_process.join()
        http_process.join()
    else:
        run_http()
