import logging
import re
from typing import Optional, Dict, Any

from fastapi import FastAPI, HTTPException, UploadFile, File, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from . import config
from .catalog import get_template, list_templates, default_values, email_defaults
from .errors import ParseFailure, ExternalServiceFailure
from .extraction import extract, resolve_dialect, apply_edits
from .services import send_email, convert_image_to_html
from .store import init_db, save_handoff, load_handoff, clear_handoff, HANDOFF_KEY
from .templating import parse_template, render_template

config.configure_logging()
logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

app = FastAPI(title="receiptserver")

# CORS
allow_origins = [o.strip() for o in config.CORS_ORIGIN.split(',') if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def _startup():
    init_db()


def _parsed(html: str) -> Dict[str, Any]:
    try:
        parsed = parse_template(html)
    except ParseFailure as exc:
        logger.warning("parse failed: %s", exc)
        raise HTTPException(400, 'Failed to parse HTML template')
    return parsed.model_dump(mode='json')


def _service_error(message: str, exc: ExternalServiceFailure) -> HTTPException:
    return HTTPException(status_code=502, detail={"error": message, "details": exc.details})


@app.get('/api/health')
def health():
    return {"ok": True}


# Templates
@app.get('/api/templates')
def templates():
    return {"items": list_templates()}


@app.get('/api/templates/{id}')
def template(id: str):
    html = get_template(id)
    if not html:
        raise HTTPException(404, 'Template not found')
    return {"id": id, **_parsed(html), "defaults": default_values(id)}


class ParseBody(BaseModel):
    html: str


@app.post('/api/templates/parse')
def parse(body: ParseBody):
    if not body.html.strip():
        raise HTTPException(400, 'Please paste HTML content first')
    return _parsed(body.html)


# Receipts
class RenderBody(BaseModel):
    templateId: Optional[str] = None
    content: Optional[str] = None
    data: Optional[Dict[str, Any]] = None


@app.post('/api/receipts/render')
def render(body: RenderBody):
    tpl = body.content
    if not tpl and body.templateId:
        tpl = get_template(body.templateId)
        if not tpl:
            raise HTTPException(404, 'Template not found')
    if not tpl:
        raise HTTPException(400, 'templateId or content required')
    return {"html": render_template(tpl, body.data or {})}


class ExtractBody(BaseModel):
    html: str
    dialect: Optional[str] = None


@app.post('/api/receipts/extract')
def extract_fields(body: ExtractBody):
    dialect = resolve_dialect(body.html, body.dialect)
    return {"dialect": dialect.name, "data": extract(body.html, dialect)}


class EditBody(BaseModel):
    html: str
    data: Dict[str, Any] = {}


@app.post('/api/receipts/edit')
def edit(body: EditBody):
    if not body.html:
        raise HTTPException(400, 'html required')
    previous = extract(body.html)
    updated = apply_edits(body.html, body.data, previous)
    return {"html": updated, "data": {**previous, **{k: v for k, v in body.data.items() if v}}}


@app.post('/api/convert-image-to-html')
def convert_image(file: UploadFile = File(...)):
    content_type = file.content_type or ''
    if not content_type.startswith('image/'):
        raise HTTPException(400, 'Please upload a valid image file')
    data = file.file.read()
    try:
        html = convert_image_to_html(data, content_type)
    except ExternalServiceFailure as exc:
        logger.error("image conversion failed: %s", exc.details)
        raise _service_error('Failed to process image', exc)
    return _parsed(html)


class EmailBody(BaseModel):
    to: Optional[str] = None
    subject: Optional[str] = None
    fromName: Optional[str] = None
    fromEmail: Optional[str] = None
    html: Optional[str] = None


@app.post('/api/send-email')
def send(body: EmailBody):
    if not body.to or not body.subject or not body.html:
        raise HTTPException(400, 'Missing required fields: to, subject, html')
    if not EMAIL_RE.match(body.to):
        raise HTTPException(400, 'Please enter a valid email address')
    try:
        message_id = send_email(body.to, body.subject, body.html, body.fromName, body.fromEmail)
    except ExternalServiceFailure as exc:
        raise _service_error('Failed to send email', exc)
    return {"success": True, "messageId": message_id, "message": "Email sent successfully"}


# Hand-off between the editor and the send step
class HandoffBody(BaseModel):
    html: str
    subject: Optional[str] = None
    fromName: Optional[str] = None
    fromEmail: Optional[str] = None
    platform: Optional[str] = None


# ?key= keeps each client's pending receipt apart; receiptData when omitted
@app.put('/api/handoff')
def put_handoff(body: HandoffBody, key: str = Query(HANDOFF_KEY, min_length=1, max_length=128)):
    return {"item": save_handoff(body.model_dump(), key)}


@app.get('/api/handoff')
def get_handoff(key: str = Query(HANDOFF_KEY, min_length=1, max_length=128)):
    item = load_handoff(key)
    if not item:
        raise HTTPException(404, 'No receipt to send')
    defaults = email_defaults(item.get('platform'), item.get('html'))
    for field, value in defaults.model_dump().items():
        if not item.get(field):
            item[field] = value
    return {"item": item}


@app.delete('/api/handoff')
def delete_handoff(key: str = Query(HANDOFF_KEY, min_length=1, max_length=128)):
    return {"ok": clear_handoff(key)}
