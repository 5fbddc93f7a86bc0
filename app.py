import logging
from contextlib import asynccontextmanager
from functools import lru_cache

import uvicorn
from fastapi import Depends, FastAPI, HTTPException
from fastapi.responses import HTMLResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from config import get_settings
from exporter import UsageExporter
from models import MergedReport

log = logging.getLogger(__name__)

INDEX_HTML = (
    "<html><body><h1>Claude Code Exporter</h1>"
    '<p><a href="/metrics">Metrics</a></p></body></html>'
)


@lru_cache
def get_exporter() -> UsageExporter:
    settings = get_settings()
    return UsageExporter(settings.stats_file, settings.claude_dir)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    log.info("Stats file: %s", settings.stats_file)
    log.info("Claude dir: %s", settings.claude_dir)
    yield


app = FastAPI(title="Claude Code Exporter", lifespan=lifespan)


@app.get("/metrics")
async def metrics(exporter: UsageExporter = Depends(get_exporter)):
    return Response(generate_latest(exporter.registry), media_type=CONTENT_TYPE_LATEST)


@app.get("/api/report", response_model=MergedReport, response_model_by_alias=False)
async def report(exporter: UsageExporter = Depends(get_exporter)):
    exporter.refresh()
    if exporter.report is None:
        raise HTTPException(503, f"Stats snapshot not available: {exporter.stats_file}")
    return exporter.report


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/", response_class=HTMLResponse)
async def index():
    return INDEX_HTML


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    settings = get_settings()
    log.info("Starting Claude Code exporter on :%d", settings.exporter_port)
    uvicorn.run(app, host="0.0.0.0", port=settings.exporter_port)


if __name__ == "__main__":
    main()
