"""
Read-only FastAPI status server. Run with run_api_server(app) in a background thread.
Endpoints: GET /api/prayer-times, GET /api/alarms, GET /api/config.
Docs when enabled: http://<host>:<port>/docs
"""
import logging
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from awqat.prayer.errors import PrayerTimesError

logger = logging.getLogger(__name__)


class PrayerTimesResponse(BaseModel):
    date: str
    fajr: Optional[str] = None
    sunrise: Optional[str] = None
    dhuhr: Optional[str] = None
    asr: Optional[str] = None
    maghrib: Optional[str] = None
    isha: Optional[str] = None


class AlarmResponse(BaseModel):
    id: int
    fires_at: Optional[str] = None
    exact: bool = True


def _serialize_datetime(dt: Optional[datetime]) -> Optional[str]:
    """Serialize datetime to ISO string (UTC when naive)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.isoformat()


def create_app(reminder_app: Any) -> FastAPI:
    """Create FastAPI app with routes that read from the given ReminderApp instance."""
    app = FastAPI(title="Awqat API", description="Prayer times and pending reminders")

    @app.get("/api/prayer-times", response_model=PrayerTimesResponse)
    def get_prayer_times(date: Optional[str] = None) -> PrayerTimesResponse:
        """Prayer times for a day (YYYY-MM-DD, default today). Unreachable events are null."""
        try:
            times = reminder_app.plugin.get_prayer_times(date)
        except PrayerTimesError as e:
            raise HTTPException(status_code=400, detail=e.to_dict())
        return PrayerTimesResponse(**times.as_dict())

    @app.get("/api/alarms", response_model=List[AlarmResponse])
    def list_alarms() -> List[AlarmResponse]:
        """Pending reminder timers, soonest first."""
        return [
            AlarmResponse(id=t["id"], fires_at=_serialize_datetime(t["fires_at"]), exact=t["exact"])
            for t in reminder_app.timer_service.get_active_timers()
        ]

    @app.get("/api/config")
    def get_config() -> Dict[str, Any]:
        """Current reminder configuration, or an empty object when none is set."""
        config = reminder_app.plugin.config
        return config.model_dump(mode="json") if config is not None else {}

    return app


def run_api_server(reminder_app: Any) -> Optional[threading.Thread]:
    """Serve the status API from a daemon thread when the ``api`` config section enables it."""
    api_config = reminder_app.config.get_section("api")
    if not api_config.get("enabled"):
        logger.info("Status API disabled (api.enabled is false)")
        return None

    import uvicorn

    server = uvicorn.Server(uvicorn.Config(
        create_app(reminder_app),
        host=api_config.get("host") or "127.0.0.1",
        port=int(api_config.get("port") or 8765),
        log_level="warning",
    ))

    def serve():
        try:
            server.run()
        except Exception as e:
            logger.exception(f"Status API stopped: {e}")

    thread = threading.Thread(target=serve, name="awqat-api", daemon=True)
    thread.start()
    logger.info(f"Status API on http://{server.config.host}:{server.config.port} (docs at /docs)")
    return thread
