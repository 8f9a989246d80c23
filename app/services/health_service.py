# app/services/health_service.py
from typing import Dict, Any
from datetime import datetime, timezone
import psutil
import platform
from app.config import settings
from app.database import check_db_connection
import logging

logger = logging.getLogger(__name__)

async def get_detailed_health() -> Dict[str, Any]:
    """Get detailed health status of the API and its store"""
    health_status = {
        "services": {},
        "system": {},
        "version": settings.APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    # DB
    db_healthy = await check_db_connection()
    health_status["services"]["database"] = {
        "healthy": db_healthy,
        "status": "connected" if db_healthy else "disconnected",
    }

    # System
    try:
        health_status["system"] = {
            "cpu_percent": psutil.cpu_percent(interval=None),
            "memory_percent": psutil.virtual_memory().percent,
            "disk_percent": psutil.disk_usage("/").percent,
            "python_version": platform.python_version(),
            "platform": platform.platform(),
        }
    except (psutil.Error, OSError) as e:
        logger.error(f"Failed to get system metrics: {e}")

    # Overall
    all_services_healthy = all(s.get("healthy", False) for s in health_status["services"].values())
    health_status["overall_health"] = "healthy" if all_services_healthy else "degraded"

    return health_status
