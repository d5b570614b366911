"""
Status & health endpoints for the Arbitrage Engine.

The app only reads the ArbitrageMonitor it is given; monitoring itself runs
in a separate thread started by main.py.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from monitor.arbitrage_monitor import ArbitrageMonitor

API_NAME = "Arbitrage Engine API"
API_VERSION = "1.0.0"


def create_app(monitor: ArbitrageMonitor) -> FastAPI:
    app = FastAPI(title=API_NAME, version=API_VERSION, docs_url=None, redoc_url=None)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.get("/")
    def root():
        return {
            "name": API_NAME,
            "version": API_VERSION,
            "status": monitor.status,
            "mode": f"High-Frequency Monitoring (Rate: {monitor.interval:g}s)",
            "currentBlock": monitor.current_block,
        }

    @app.get("/arbitrage-status")
    def arbitrage_status():
        return monitor.snapshot()

    @app.get("/rpc-status")
    def rpc_status():
        """Connection manager state, for operators debugging endpoint failover."""
        return monitor.manager.get_status().to_dict()

    return app
