import os
import json
import logging
import threading
import time
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from .catalog_store import CatalogStore, ensure_dir
from .client.routes import parse_path
from .errors import CatalogError, UploadInProgress, UploadRejected
from .m3u_core import TYPE_GROUPS, TYPE_NAMES, build_catalog

logger = logging.getLogger(__name__)

DATA_DIR = Path(os.getenv("DATA_DIR", "./data")).resolve()
UPLOAD_DIR = Path(os.getenv("UPLOAD_DIR", str(DATA_DIR / "uploads"))).resolve()
PORT = int(os.getenv("PORT", "3000"))
MAX_UPLOAD_MB = int(os.getenv("MAX_UPLOAD_MB", "100"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

CONFIG_PATH = DATA_DIR / "config.json"
ALLOWED_EXTENSIONS = (".m3u", ".m3u8")
UPLOAD_FIELD = "playlist"
CHUNK_SIZE = 1024 * 1024
STALE_UPLOAD_SECONDS = 3600

SERVER_NAME = "IPTV Player Backend"
SERVER_VERSION = "2.0.0"

ensure_dir(DATA_DIR)
ensure_dir(UPLOAD_DIR)

store = CatalogStore(DATA_DIR)
upload_lock = threading.Lock()

app = FastAPI()
app.mount("/static", StaticFiles(directory=str(Path(__file__).parent / "static")), name="static")
templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))


def error_response(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"success": False, "error": message}, status_code=status_code)


def default_config():
    return {
        "backup": {"keep": 10},
        "schedule": {"enabled": True, "daily_time": "03:30"},
    }


def load_config():
    if not CONFIG_PATH.exists():
        return default_config()
    cfg = json.loads(CONFIG_PATH.read_text(encoding="utf-8"))
    merged = default_config()
    for key, value in cfg.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key].update(value)
        else:
            merged[key] = value
    return merged


def save_config(cfg):
    CONFIG_PATH.write_text(json.dumps(cfg, ensure_ascii=False, indent=2), encoding="utf-8")


# ---------------------------
# Upload processing
# ---------------------------
def _validate_upload(files) -> UploadFile:
    if not files:
        raise UploadRejected("No file was uploaded")
    if len(files) > 1:
        raise UploadRejected("Upload exactly one playlist file")
    upload = files[0]
    if not isinstance(upload, UploadFile):
        raise UploadRejected(f"Field '{UPLOAD_FIELD}' must carry a file")
    filename = (upload.filename or "").lower()
    if not filename.endswith(ALLOWED_EXTENSIONS):
        raise UploadRejected("Only .m3u and .m3u8 files are allowed")
    return upload


async def _save_upload(upload: UploadFile) -> Path:
    limit = MAX_UPLOAD_MB * 1024 * 1024
    target = UPLOAD_DIR / f"playlist_{int(time.time() * 1000)}.m3u"
    size = 0
    try:
        with target.open("wb") as f:
            while True:
                chunk = await upload.read(CHUNK_SIZE)
                if not chunk:
                    break
                size += len(chunk)
                if size > limit:
                    raise UploadRejected(f"File too large. Limit is {MAX_UPLOAD_MB}MB.")
                f.write(chunk)
    except BaseException:
        target.unlink(missing_ok=True)
        raise
    return target


def process_playlist(path: Path) -> dict:
    text = path.read_text(encoding="utf-8", errors="replace")
    catalog = build_catalog(text)
    files_created = store.replace_catalog(catalog)
    store.write_backup(catalog)
    logger.info(
        "Playlist processed: %d channels in %d categories (%d entries parsed)",
        catalog.total_channels,
        catalog.total_categories,
        catalog.original_stats["totalChannels"],
    )
    return {
        "totalChannels": catalog.total_channels,
        "totalCategories": catalog.total_categories,
        "lastUpdated": catalog.summary["lastUpdated"],
        "lazyLoading": True,
        "filesCreated": files_created,
    }


# ---------------------------
# Maintenance
# ---------------------------
def cleanup_uploads(max_age: int = STALE_UPLOAD_SECONDS):
    removed = []
    cutoff = time.time() - max_age
    for p in UPLOAD_DIR.glob("playlist_*"):
        if p.is_file() and p.stat().st_mtime < cutoff:
            p.unlink(missing_ok=True)
            removed.append(str(p))
    return removed


def do_maintenance(reason: str):
    cfg = load_config()
    keep = int(cfg.get("backup", {}).get("keep", 10))
    pruned = store.prune_backups(keep)
    stale = cleanup_uploads()
    logger.info("Maintenance (%s): %d backups pruned, %d stale uploads removed", reason, len(pruned), len(stale))
    return {"backups_pruned": len(pruned), "uploads_removed": len(stale)}


scheduler = BackgroundScheduler()


def schedule_job():
    scheduler.remove_all_jobs()
    cfg = load_config()
    sch = cfg.get("schedule", {})
    if not sch.get("enabled"):
        return
    hh, mm = sch.get("daily_time", "03:30").split(":")
    trigger = CronTrigger(hour=int(hh), minute=int(mm))
    scheduler.add_job(lambda: do_maintenance("scheduled"), trigger, id="daily_maintenance", replace_existing=True)


@app.on_event("startup")
def on_startup():
    if not scheduler.running:
        scheduler.start()
    schedule_job()


@app.on_event("shutdown")
def on_shutdown():
    if scheduler.running:
        scheduler.shutdown(wait=False)


# ---------------------------
# API
# ---------------------------
@app.post("/api/upload-playlist")
async def api_upload_playlist(request: Request):
    if not upload_lock.acquire(blocking=False):
        exc = UploadInProgress()
        return error_response(str(exc), exc.status_code)

    saved = None
    try:
        form = await request.form()
        upload = _validate_upload(form.getlist(UPLOAD_FIELD))
        logger.info("Processing upload: %s", upload.filename)
        saved = await _save_upload(upload)
        stats = await run_in_threadpool(process_playlist, saved)
        return JSONResponse({"success": True, "message": "Playlist processed successfully", "stats": stats})
    except UploadRejected as e:
        logger.info("Upload rejected: %s", e)
        return error_response(str(e), e.status_code)
    except Exception:
        logger.exception("Failed to process playlist")
        return error_response("Failed to process playlist", 500)
    finally:
        if saved is not None:
            saved.unlink(missing_ok=True)
        upload_lock.release()


@app.get("/api/playlist")
def api_playlist():
    try:
        return JSONResponse(store.get_summary())
    except CatalogError as e:
        return error_response(str(e), e.status_code)


@app.get("/api/categories")
def api_categories():
    try:
        listing = store.list_categories()
    except CatalogError as e:
        return error_response(str(e), e.status_code)
    return JSONResponse(
        {
            "success": True,
            "categories": listing["categories"],
            "totalCategories": listing["totalCategories"],
            "lastUpdated": listing["lastUpdated"],
        }
    )


@app.get("/api/grouped-categories")
def api_grouped_categories():
    try:
        grouped = store.get_grouped()
    except CatalogError as e:
        return error_response(str(e), e.status_code)
    return JSONResponse({"success": True, **grouped})


@app.get("/api/categories/{type_name}")
def api_categories_by_type(type_name: str):
    try:
        group = store.get_type_group(type_name)
    except CatalogError as e:
        return error_response(str(e), e.status_code)
    return JSONResponse({"success": True, "type": type_name, **group})


@app.get("/api/channels/{category:path}")
def api_channels(category: str):
    try:
        data = store.get_category(category)
    except CatalogError as e:
        return error_response(str(e), e.status_code)
    return JSONResponse(
        {
            "success": True,
            "category": data["name"],
            "channels": data["channels"],
            "channelCount": data["channelCount"],
        }
    )


@app.get("/api/all-channels/{type_name}")
def api_all_channels(type_name: str):
    try:
        channels = store.all_channels(type_name)
    except CatalogError as e:
        return error_response(str(e), e.status_code)
    return JSONResponse({"success": True, "type": type_name, "channels": channels, "channelCount": len(channels)})


@app.get("/api/status")
def api_status():
    playlist = None
    if store.has_catalog():
        try:
            summary = store.get_summary()
        except CatalogError:
            summary = None
        if summary:
            playlist = {
                "lastUpdated": summary.get("lastUpdated"),
                "totalChannels": summary.get("totalChannels"),
                "totalCategories": summary.get("totalCategories"),
                "lazyLoading": summary.get("lazyLoading"),
                "version": summary.get("version"),
                "types": summary.get("types"),
            }
    return JSONResponse(
        {
            "success": True,
            "server": SERVER_NAME,
            "version": SERVER_VERSION,
            "hasPlaylist": playlist is not None,
            "playlist": playlist,
        }
    )


@app.get("/api/config")
def api_get_config():
    return JSONResponse(load_config())


@app.post("/api/config")
async def api_set_config(request: Request):
    cfg = await request.json()
    if not isinstance(cfg, dict):
        return error_response("Config must be a JSON object", 400)
    save_config(cfg)
    schedule_job()
    return JSONResponse({"success": True})


# ---------------------------
# Pages
# ---------------------------
def render_index(request: Request, path: str):
    route = parse_path(path)
    summary = None
    if store.has_catalog():
        try:
            summary = store.get_summary()
        except CatalogError:
            summary = None
    types = []
    for t in TYPE_NAMES:
        stats = ((summary or {}).get("types") or {}).get(t) or {"totalCategories": 0, "totalChannels": 0}
        types.append({"key": t, "label": TYPE_GROUPS[t]["name"], "description": TYPE_GROUPS[t]["description"], **stats})
    return templates.TemplateResponse(
        request,
        "index.html",
        {"route": route, "summary": summary, "types": types, "max_upload_mb": MAX_UPLOAD_MB},
    )


@app.get("/", response_class=HTMLResponse)
def index(request: Request):
    return render_index(request, "/")


@app.get("/{path:path}", response_class=HTMLResponse)
def browser_route(request: Request, path: str):
    if path.startswith("api/"):
        return error_response("Not found", 404)
    return render_index(request, "/" + path)


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run(app, host="0.0.0.0", port=PORT)
