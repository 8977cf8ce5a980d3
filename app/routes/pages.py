from pathlib import Path

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

router = APIRouter(tags=["pages"])

templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent.parent / "templates"))


@router.get("/", response_class=HTMLResponse)
def index(request: Request):
    """Demo page. All state lives in the browser; see static/app.js."""
    return templates.TemplateResponse(
        request,
        "index.html",
        {
            "app_name": request.app.title,
            "api_prefix": "/api/user",
            "page_title": "ORM Demo",
        },
    )
