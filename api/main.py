from fastapi import FastAPI

from society_reports.logger_config import setup_logging
from society_reports.system_config import sys_config

setup_logging(log_dir=sys_config.run_log_dir, level=sys_config.log_level)

app = FastAPI(title="Society Reports")

# Include Routers
from api.routers import receipts, reports
app.include_router(reports.router)
app.include_router(receipts.router)


@app.get("/api/health")
async def health_check():
    return {"status": "ok"}
