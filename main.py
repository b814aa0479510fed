import sys
import os
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from agap.shared import config
from agap.shared.db import init_db, close_db
from agap.shared.schema import create_tables
from agap.shared.seed import seed_data
from agap.auth.router import router as auth_router
from agap.access.router import router as access_router
from agap.alerts.router import router as alerts_router
from agap.reports.router import router as reports_router
from agap.vision.router import router as vision_router
from agap.assignments.router import router as assignments_router
from agap.incidents.router import router as incidents_router
from agap.profiles.router import router as profiles_router
from agap.admin.router import router as admin_router
from agap.realtime.router import router as realtime_router
from agap.map.router import router as map_router
from agap.shared.response import success_response

app = FastAPI(title="AGAP Emergency Response API")

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(auth_router, prefix="/api/auth")
app.include_router(access_router, prefix="/api/access")
app.include_router(alerts_router, prefix="/api/alerts")
app.include_router(reports_router, prefix="/api/reports")
app.include_router(vision_router, prefix="/api/vision")
app.include_router(assignments_router, prefix="/api/assignments")
app.include_router(incidents_router, prefix="/api/incidents")
app.include_router(profiles_router, prefix="/api/profiles")
app.include_router(admin_router, prefix="/api/admin")
app.include_router(realtime_router, prefix="/api/realtime")
app.include_router(map_router, prefix="/api/map")

@app.get("/api/health")
async def health():
    return success_response({"service": "agap"}, "OK")

@app.on_event("startup")
async def startup_event():
    """Initialize database tables and seed data on startup"""
    await init_db()
    await create_tables()
    await seed_data()

@app.on_event("shutdown")
async def shutdown_event():
    await close_db()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
