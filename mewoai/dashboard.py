"""Administrative web dashboard for the MeWoai bot."""
from __future__ import annotations

import logging
import shutil
import time
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, File, Form, HTTPException, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import HTMLResponse, RedirectResponse
from jinja2 import Environment, FileSystemLoader, select_autoescape
from pydantic import BaseModel

from .models import Announcement, AnnouncementCategory, MemberRecord
from .service import MENTION_TOKENS, MemberService

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"

jinja_env = Environment(
    loader=FileSystemLoader(TEMPLATES_DIR),
    autoescape=select_autoescape(["html", "xml"]),
)


class MemberSummary(BaseModel):
    user_id: str
    display_name: str
    xp: int
    warn_count: int

    @classmethod
    def from_record(cls, member: MemberRecord) -> "MemberSummary":
        return cls(
            user_id=member.user_id,
            display_name=member.display_name,
            xp=member.xp,
            warn_count=member.warn_count,
        )


class StatsPayload(BaseModel):
    total: int
    warned: int
    top: Optional[MemberSummary] = None


def _render(template_name: str, *, status_code: int = 200, **context) -> HTMLResponse:
    template = jinja_env.get_template(template_name)
    return HTMLResponse(template.render(**context), status_code=status_code)


def _message(text: str, *, page: str, status_code: int) -> HTMLResponse:
    return _render("message.html", status_code=status_code, message=text, page=page)


def _write_upload(source, target: Path) -> None:
    with target.open("wb") as fh:
        shutil.copyfileobj(source, fh)


async def store_upload(upload: UploadFile, upload_dir: Path) -> Path:
    """Persist an uploaded file under a millisecond timestamp name."""

    upload_dir.mkdir(parents=True, exist_ok=True)
    suffix = Path(upload.filename or "").suffix
    target = upload_dir / f"{int(time.time() * 1000)}{suffix}"
    await run_in_threadpool(_write_upload, upload.file, target)
    return target


def _discard(stored: Optional[Path]) -> None:
    if stored is not None:
        stored.unlink(missing_ok=True)


def create_app(service: MemberService, *, upload_dir: Optional[Path] = None) -> FastAPI:
    """Build the dashboard application bound to ``service``."""

    uploads = upload_dir or service.settings.upload_dir
    app = FastAPI(title="MeWoai Dashboard")

    @app.get("/", response_class=HTMLResponse)
    async def index() -> HTMLResponse:
        """Render the dashboard landing page."""

        return _render("dashboard.html", stats=service.dashboard_stats(), page="home")

    @app.get("/health", response_class=HTMLResponse)
    async def healthcheck() -> HTMLResponse:
        return HTMLResponse("mewoai-dashboard: ok")

    @app.get("/api/stats", response_model=StatsPayload)
    async def api_stats() -> StatsPayload:
        stats = service.dashboard_stats()
        top = MemberSummary.from_record(stats.top) if stats.top else None
        return StatsPayload(total=stats.total, warned=stats.warned, top=top)

    @app.get("/upload", response_class=HTMLResponse)
    async def upload_form() -> HTMLResponse:
        return _render(
            "upload.html",
            channels=service.announcement_channels(),
            categories=[category.value for category in AnnouncementCategory],
            mentions=MENTION_TOKENS,
            page="upload",
        )

    @app.post("/post-info")
    async def post_info(
        target_channel: int = Form(...),
        title: str = Form(...),
        body: str = Form(...),
        category: str = Form(AnnouncementCategory.INFO.value),
        mention: str = Form(""),
        attachment: Optional[UploadFile] = File(None),
    ):
        mention = mention.strip()
        if mention and mention not in MENTION_TOKENS:
            raise HTTPException(status_code=400, detail=f"unsupported mention {mention!r}")
        stored: Optional[Path] = None
        if attachment is not None and attachment.filename:
            stored = await store_upload(attachment, uploads)
        announcement = Announcement(
            channel_id=target_channel,
            title=title,
            body=body,
            category=AnnouncementCategory.parse(category),
            mention=mention or None,
            attachment=stored,
        )
        try:
            delivered = await service.post_announcement(announcement)
        except MemberService.ChannelNotFoundError:
            _discard(stored)
            return _message("Channel not found.", page="upload", status_code=404)
        if not delivered:
            _discard(stored)
        return RedirectResponse("/", status_code=303)

    @app.get("/absen", response_class=HTMLResponse)
    async def attendance_form() -> HTMLResponse:
        return _render("absen.html", venue=service.settings.venue_channel, page="absen")

    @app.post("/proses-absen", response_class=HTMLResponse)
    async def process_attendance() -> HTMLResponse:
        try:
            report = await service.process_attendance()
        except MemberService.VenueNotFoundError:
            venue = service.settings.venue_channel
            return _message(f"Channel '{venue}' not found!", page="absen", status_code=404)
        return _render("attendance_report.html", report=report, counts=report.counts(), page="absen")

    @app.get("/security", response_class=HTMLResponse)
    async def security() -> HTMLResponse:
        return _render("security.html", candidates=service.security_candidates(), page="security")

    @app.post("/promote")
    async def promote(user_id: str = Form(...)):
        try:
            await service.promote(user_id)
        except MemberService.MemberNotFoundError:
            return _message("Member not found.", page="security", status_code=404)
        return RedirectResponse("/security", status_code=303)

    return app


__all__ = ["MemberSummary", "StatsPayload", "create_app", "store_upload"]
