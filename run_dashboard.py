#!/usr/bin/env python
"""
Dashboard API Server Runner.

Usage:
    python run_dashboard.py
    
Or with PM2:
    pm2 start run_dashboard.py --interpreter python

The Streamlit front end talks to this server:
    streamlit run dashboard/streamlit_app.py
"""

import os
import sys
import logging
import uvicorn

from dashboard.config import LOG_LEVELS, DashboardConfig


def main():
    """Run the dashboard API server."""
    config = DashboardConfig.from_env()
    
    # Setup logging
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format='%(asctime)s | %(levelname)s | %(name)s | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    logger = logging.getLogger(__name__)
    
    reload = os.getenv("ENVIRONMENT", "production") == "development"
    
    for problem in config.validate():
        logger.error(f"Configuration error: {problem}")
    
    logger.info(f"Starting Dashboard API on {config.host}:{config.port} (source={config.source_type})")
    
    try:
        uvicorn.run(
            "dashboard.api:app",
            host=config.host,
            port=config.port,
            reload=reload,
            log_level=config.log_level.lower() if config.log_level in LOG_LEVELS else "info",
            access_log=True,
        )
    except Exception as e:
        logger.error(f"Failed to start dashboard: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
