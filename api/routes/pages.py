"""
Page Endpoints
==============

GET /    - single-page memo converter
GET /api - API information and links
"""

from fastapi import APIRouter, Depends
from fastapi.responses import HTMLResponse

from config import Settings
from api.dependencies import get_app_settings


router = APIRouter()


INDEX_HTML = """<!DOCTYPE html>
<html lang="ja">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>{app_name}</title>
<style>
  body {{ font-family: sans-serif; max-width: 720px; margin: 2rem auto; padding: 0 1rem; }}
  textarea {{ width: 100%; min-height: 8rem; }}
  #output {{ white-space: pre-wrap; border: 1px solid #ccc; padding: 1rem; min-height: 4rem; }}
  .error {{ color: #b00020; }}
</style>
</head>
<body>
<h1>{app_name}</h1>
<p>観察メモを入力すると、看護記録・報告書の形式に整えます。個人情報は入力しないでください。</p>
<textarea id="memo" placeholder="例: 10時 体温37.8度 頭痛の訴えあり 水分摂取促す"></textarea>
<p>
  <select id="docType"><option>記録</option><option>報告書</option></select>
  <select id="format"><option>文章形式</option><option>SOAP形式</option></select>
  <select id="style"><option>だ・である体</option><option>ですます体</option></select>
  <input id="charLimit" type="number" min="{min_limit}" max="{max_limit}" value="{default_limit}">
  <button id="convert">変換</button>
  <button id="copy">コピー</button>
</p>
<div id="output"></div>
<script>
const out = document.getElementById('output');
document.getElementById('convert').onclick = async () => {{
  out.className = '';
  out.textContent = '変換中...';
  const headers = {{'Content-Type': 'application/json'}};
  const sessionId = localStorage.getItem('sessionId');
  if (sessionId) headers['X-Session-Id'] = sessionId;
  const token = localStorage.getItem('authToken');
  if (token) headers['Authorization'] = 'Bearer ' + token;
  const res = await fetch('/api/convert', {{
    method: 'POST',
    headers,
    body: JSON.stringify({{
      text: document.getElementById('memo').value,
      docType: document.getElementById('docType').value,
      format: document.getElementById('format').value,
      style: document.getElementById('style').value,
      charLimit: Number(document.getElementById('charLimit').value)
    }})
  }});
  const data = await res.json();
  if (data.success) {{
    localStorage.setItem('sessionId', data.sessionId);
    out.textContent = data.convertedText;
  }} else {{
    out.className = 'error';
    out.textContent = data.error;
  }}
}};
document.getElementById('copy').onclick = () => navigator.clipboard.writeText(out.textContent);
</script>
</body>
</html>
"""


@router.get("/", response_class=HTMLResponse, include_in_schema=False)
async def index(settings: Settings = Depends(get_app_settings)) -> HTMLResponse:
    """Serve the converter page."""
    return HTMLResponse(INDEX_HTML.format(
        app_name=settings.app_name,
        min_limit=settings.min_char_limit,
        max_limit=settings.max_char_limit,
        default_limit=settings.default_char_limit,
    ))


@router.get("/api", tags=["root"])
async def api_root(settings: Settings = Depends(get_app_settings)) -> dict:
    """
    API information and links.

    Returns basic information about the API and links to documentation.
    """
    return {
        "message": f"{settings.app_name} API",
        "description": "Convert informal nursing memos into clinical documentation",
        "version": settings.app_version,
        "docs": "/api/docs",
        "redoc": "/api/redoc",
        "health": "/api/health"
    }
