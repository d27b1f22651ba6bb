#!/usr/bin/env python3
"""
FinPay Entry Point

Starts the FastAPI server with a fresh in-memory ledger.
"""

import sys
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from finpay.api import run_server
from finpay.config import get_config


if __name__ == "__main__":
    config = get_config()
    print(f"FinPay running on http://localhost:{config.api_port}")
    if config.seed_demo_accounts:
        print(f"Demo accounts: alice / bob ({config.demo_password})")
    print(f"Documentation at: http://localhost:{config.api_port}/docs")
    print()
    
    try:
        run_server(host=config.api_host, port=config.api_port)
    except KeyboardInterrupt:
        print("\nShutting down FinPay...")
    except Exception as e:
        print(f"Error starting server: {e}")
        sys.exit(1)
