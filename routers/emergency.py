import html

from fastapi import APIRouter
from fastapi.responses import HTMLResponse, JSONResponse

from emergency_contacts import contacts_for
from ui import PAGE_STYLE, _nav_bar

router = APIRouter()


@router.get("/api/emergency-contacts")
def api_emergency_contacts(country: str = ""):
    code, contacts = contacts_for(country)
    return JSONResponse({"country": code, "contacts": contacts})


@router.get("/emergency", response_class=HTMLResponse)
def emergency_page(country: str = ""):
    code, contacts = contacts_for(country)
    rows = "".join(
        f"""
      <div class="card contact">
        <div>
          <div class="card-name">{html.escape(c["name"])}</div>
          <div class="card-ts">{html.escape(c["description"])}</div>
        </div>
        <a href="tel:{html.escape(c["number"])}">{html.escape(c["number"])}</a>
      </div>"""
        for c in contacts
    )
    label = "International" if code == "default" else code
    return f"""<!DOCTYPE html>
<html>
<head>{PAGE_STYLE}<title>Emergency Contacts</title></head>
<body>
  {_nav_bar('emergency')}
  <div class="container">
    <h1>Emergency Contacts</h1>
    <p style="color:#6b7280;font-size:14px;margin:0;">Showing numbers for {html.escape(label)}.</p>
    <form method="get" action="/emergency" style="margin:12px 0;display:flex;gap:8px;">
      <input type="text" name="country" maxlength="2" placeholder="Country code, e.g. GB"
        value="{html.escape('' if code == 'default' else code)}">
      <button type="submit" class="btn-primary">Show</button>
    </form>
    {rows}
    <div class="alert" style="margin-top:20px;">
      If you or someone else is in immediate danger, call your local emergency number now.
    </div>
  </div>
</body>
</html>"""
