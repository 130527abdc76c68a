"""
FastAPI application for the Camp Roster Organizer.

Provides endpoints for uploading registration and staff spreadsheets and
downloading the organised workbooks: sibling roster, team divider and
worker attendance sheet.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
import uuid
from datetime import datetime
from pathlib import Path
from urllib.parse import quote
from zipfile import BadZipFile

import uvicorn
from fastapi import FastAPI, File, Form, HTTPException, UploadFile

# ── Logging setup ──────────────────────────────────────────────────
logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "DEBUG").upper(),
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%H:%M:%S",
)
log = logging.getLogger("roster-organizer")
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from openpyxl.utils.exceptions import InvalidFileException

from attendance import build_attendance_sheet
from exporter import XLSX_MEDIA_TYPE, export_workbook
from models import GradeGroupPreview, HealthResponse, ProcessOptions, RosterPreviewResponse, StudentRow
from reader import REGISTRATION_MARKERS, STAFF_MARKERS, RosterError, prepare_children, read_sheet_rows
from roster import RosterResult, assemble, assemble_team_groups, filter_children
from sheets import roster_workbook, team_workbook

# ---------------------------------------------------------------------------
# App setup
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Camp Roster Organizer",
    description="Upload registration spreadsheets and download rosters sorted by grade, with siblings and teams.",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Temporary upload directory (configurable via env var)
UPLOAD_DIR = Path(os.environ.get("ROSTER_UPLOAD_DIR", str(Path(tempfile.gettempdir()) / "roster_uploads")))
UPLOAD_DIR.mkdir(parents=True, exist_ok=True)

HEADER_SCAN_ROWS = int(os.environ.get("ROSTER_HEADER_SCAN_ROWS", "10"))

HOST = os.environ.get("ROSTER_HOST", "127.0.0.1")
PORT = int(os.environ.get("ROSTER_PORT", "8000"))

ACCEPTED_SUFFIXES = (".xlsx",)

log.info("=" * 60)
log.info("Camp Roster Organizer starting up")
log.info(f"Upload dir   : {UPLOAD_DIR}")
log.info(f"Header scan  : rows 1-{HEADER_SCAN_ROWS + 1}")
log.info("=" * 60)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def _save_upload(file: UploadFile, session_dir: Path) -> Path:
    """Store an uploaded spreadsheet in the session dir, rejecting other file types."""
    if not file.filename or not file.filename.lower().endswith(ACCEPTED_SUFFIXES):
        log.warning(f"[UPLOAD] Rejected file: {file.filename}")
        raise HTTPException(status_code=400, detail="只接受 .xlsx 格式的檔案")
    dest = session_dir / f"upload-{uuid.uuid4().hex}.xlsx"
    content = await file.read()
    dest.write_bytes(content)
    log.info(f"[UPLOAD] Saved: {file.filename} ({len(content)} bytes)")
    return dest


def _new_session_dir() -> Path:
    session_dir = UPLOAD_DIR / str(uuid.uuid4())
    session_dir.mkdir(parents=True, exist_ok=True)
    log.debug(f"[UPLOAD] Session dir: {session_dir}")
    return session_dir


def _load_registrations(path: Path, options: ProcessOptions, team_flow: bool = False) -> RosterResult:
    rows = read_sheet_rows(path, REGISTRATION_MARKERS, HEADER_SCAN_ROWS, log)
    children = prepare_children(rows)
    kept = filter_children(children, options.hide_cancelled, options.hide_no_number)
    log.info(f"[PROCESS] {len(kept)} of {len(children)} row(s) kept after filtering ({options})")
    if team_flow:
        return assemble_team_groups(kept, log)
    return assemble(kept, logger=log)


def _download(stream, filename: str, fallback: str) -> StreamingResponse:
    disposition = f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename)}"
    return StreamingResponse(stream, media_type=XLSX_MEDIA_TYPE, headers={"Content-Disposition": disposition})


def _raise_for(error: Exception, tag: str) -> None:
    """Translate a processing failure into an HTTPException."""
    if isinstance(error, HTTPException):
        raise error
    if isinstance(error, RosterError):
        log.warning(f"[{tag}] {error}")
        raise HTTPException(status_code=400, detail=str(error))
    if isinstance(error, (InvalidFileException, BadZipFile)):
        log.warning(f"[{tag}] Unreadable workbook: {error}")
        raise HTTPException(status_code=400, detail="Excel 檔案格式錯誤或檔案損壞，請確認檔案是否正確")
    log.error(f"[{tag}] ✗ Processing failed: {error}", exc_info=True)
    raise HTTPException(status_code=500, detail=f"處理檔案時發生錯誤: {error}")


def _options(hide_cancelled: bool, hide_no_number: bool, sort_by: str) -> ProcessOptions:
    try:
        return ProcessOptions(hide_cancelled=hide_cancelled, hide_no_number=hide_no_number, sort_by=sort_by)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown sortBy value: {sort_by}")


def _to_preview(result: RosterResult) -> RosterPreviewResponse:
    groups = [
        GradeGroupPreview(
            grade=bucket,
            count=len(records),
            students=[
                StudentRow(
                    original_index=r.original_index,
                    index=r.index,
                    registration_number=r.registration_number,
                    child_name=r.child_name,
                    gender=r.gender,
                    grade=r.grade,
                    school=r.school,
                    sibling_titles=r.siblings.titles_text,
                    sibling_names=r.siblings.names_text,
                    sibling_genders=r.siblings.genders_text,
                    sibling_grades=r.siblings.grades_text,
                    guardian_name=r.guardian_name,
                    guardian_phone=r.guardian_phone,
                    note=r.note,
                )
                for r in records
            ],
        )
        for bucket, records in result.groups.items()
    ]
    return RosterPreviewResponse(success=True, total_students=len(result.students), groups=groups)


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@app.get("/api/team", response_model=HealthResponse)
async def team_health():
    return HealthResponse(status="ok", message="team API is ready")


@app.post("/api/upload")
async def upload_roster(
    file: UploadFile = File(...),
    hide_cancelled: bool = Form(False, alias="hideCancelled"),
    hide_no_number: bool = Form(False, alias="hideNoNumber"),
    sort_by: str = Form("registrationNumber", alias="sortBy"),
):
    """
    Upload a registration sheet and download the sibling roster.

    The workbook holds a summary sheet followed by one sheet per grade.
    """
    options = _options(hide_cancelled, hide_no_number, sort_by)
    log.info(f"[UPLOAD] Roster requested for {file.filename}")
    session_dir = _new_session_dir()
    try:
        path = await _save_upload(file, session_dir)
        result = _load_registrations(path, options)
        stream = export_workbook(roster_workbook(result, options.sort_by))
    except Exception as e:
        _raise_for(e, "UPLOAD")
    finally:
        shutil.rmtree(session_dir, ignore_errors=True)

    log.info("[UPLOAD] ✓ Roster generated, sending download")
    return _download(stream, "整理後的報名資料.xlsx", "processed.xlsx")


@app.post("/api/preview", response_model=RosterPreviewResponse)
async def preview_roster(
    file: UploadFile = File(...),
    hide_cancelled: bool = Form(False, alias="hideCancelled"),
    hide_no_number: bool = Form(False, alias="hideNoNumber"),
    sort_by: str = Form("registrationNumber", alias="sortBy"),
):
    """Upload a registration sheet and return the grouped records as JSON."""
    options = _options(hide_cancelled, hide_no_number, sort_by)
    session_dir = _new_session_dir()
    try:
        path = await _save_upload(file, session_dir)
        result = _load_registrations(path, options)
    except Exception as e:
        _raise_for(e, "PREVIEW")
    finally:
        shutil.rmtree(session_dir, ignore_errors=True)

    log.info(f"[PREVIEW] {len(result.students)} record(s) in {len(result.groups)} group(s)")
    return _to_preview(result)


@app.post("/api/team/upload")
async def upload_team_divider(
    file: UploadFile = File(...),
    hide_cancelled: bool = Form(False, alias="hideCancelled"),
    hide_no_number: bool = Form(False, alias="hideNoNumber"),
    sort_by: str = Form("registrationNumber", alias="sortBy"),
):
    """
    Upload a registration sheet and download the team-divider workbook.

    Summary (with team lookup formulas), statistics, then one sheet per grade.
    """
    options = _options(hide_cancelled, hide_no_number, sort_by)
    log.info(f"[TEAM] Team divider requested for {file.filename}")
    session_dir = _new_session_dir()
    try:
        path = await _save_upload(file, session_dir)
        result = _load_registrations(path, options, team_flow=True)
        stream = export_workbook(team_workbook(result, options.sort_by))
    except Exception as e:
        _raise_for(e, "TEAM")
    finally:
        shutil.rmtree(session_dir, ignore_errors=True)

    stamp = datetime.now().strftime("%Y%m%d%H%M%S")
    log.info("[TEAM] ✓ Workbook generated, sending download")
    return _download(stream, f"分小隊_{stamp}.xlsx", f"teams_{stamp}.xlsx")


@app.post("/api/team/worker-attendance")
async def upload_worker_attendance(
    file: UploadFile = File(...),
    output_file_name: str = Form("", alias="outputFileName"),
):
    """Upload a staff list and download the worker attendance sheet."""
    log.info(f"[ATTEND] Attendance sheet requested for {file.filename}")
    session_dir = _new_session_dir()
    try:
        path = await _save_upload(file, session_dir)
        rows = read_sheet_rows(path, STAFF_MARKERS, HEADER_SCAN_ROWS, log)
        stream = export_workbook([build_attendance_sheet(rows, log)])
    except Exception as e:
        _raise_for(e, "ATTEND")
    finally:
        shutil.rmtree(session_dir, ignore_errors=True)

    filename = output_file_name.strip() or f"同工出席名單_{datetime.now():%Y%m%d}.xlsx"
    if not filename.lower().endswith(".xlsx"):
        filename += ".xlsx"
    log.info(f"[ATTEND] ✓ Sending {filename}")
    return _download(stream, filename, "worker_attendance.xlsx")


def run() -> None:
    """Serve the app with uvicorn on ROSTER_HOST:ROSTER_PORT."""
    log.info(f"Serving on http://{HOST}:{PORT}")
    uvicorn.run(app, host=HOST, port=PORT)


if __name__ == "__main__":
    run()
