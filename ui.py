import html

from tracker import CHART_NONE, CHART_TAKEN, FREQ_LABELS


def _adherence_badge(adh: dict) -> str:
    if adh["expected"] == 0:
        return '<span style="font-size:12px;color:#9ca3af;">No data yet</span>'
    pct = adh["pct"]
    if pct >= 80:
        bg, fg = "#dcfce7", "#15803d"
    elif pct >= 50:
        bg, fg = "#fef9c3", "#92400e"
    else:
        bg, fg = "#fee2e2", "#b91c1c"
    return (
        f'<span style="font-size:12px;background:{bg};color:{fg};border-radius:10px;'
        f'padding:2px 8px;font-weight:700;">{pct}% adherence (7d)</span>'
    )


_CHART_COLORS = {
    CHART_NONE: ("#f3f4f6", "#9ca3af", "No data"),
    CHART_TAKEN: ("#22c55e", "#fff", "All doses taken"),
}
_PARTIAL_COLORS = ("#facc15", "#713f12", "Some doses missed or skipped")


def _chart_html(days: list) -> str:
    cells = []
    for d in days:
        bg, fg, title = _CHART_COLORS.get(d["status"], _PARTIAL_COLORS)
        cells.append(
            f'<div class="chart-day" title="{html.escape(d["date"])}: {title}">'
            f'<div class="chart-dot" style="background:{bg};color:{fg};"></div>'
            f'<small>{html.escape(d["label"])}</small></div>'
        )
    return f'<div class="chart-row">{"".join(cells)}</div>'


def _upcoming_html(items: list) -> str:
    if not items:
        return "<p class='empty'>Nothing due for the rest of today.</p>"
    rows = []
    for item in items:
        r = item["reminder"]
        chip = (
            '<span class="dose-chip dose-chip-overdue">Overdue</span>'
            if item["is_overdue"]
            else '<span class="dose-chip dose-chip-pending">Upcoming</span>'
        )
        rows.append(
            f'<div class="dose-row">'
            f'<span class="dose-time">{html.escape(item["time"])}</span>'
            f'<span class="dose-name">{html.escape(r["name"])}'
            f' <span class="med-dose">{html.escape(r["dose"])}</span></span>'
            f'{chip}</div>'
        )
    return "".join(rows)


def _reminder_card(reminder: dict, adh: dict, chart: list) -> str:
    freq_label = FREQ_LABELS.get(reminder["frequency"], reminder["frequency"])
    period = html.escape(reminder["start_date"])
    if reminder.get("end_date"):
        period += f' &rarr; {html.escape(reminder["end_date"])}'
    notes = (
        f"<p class='card-notes'>{html.escape(reminder['notes'])}</p>" if reminder.get("notes") else ""
    )
    return f"""
      <div class="card">
        <div style="display:flex;align-items:center;justify-content:space-between;gap:8px;flex-wrap:wrap;">
          <div>
            <span class="card-name">{html.escape(reminder["name"])}</span>
            <span class="med-dose">{html.escape(reminder["dose"])}</span>
            <div class="card-ts">{html.escape(freq_label)} &middot; {html.escape(", ".join(reminder["times"]))} &middot; {period}</div>
          </div>
          <div>{_adherence_badge(adh)}</div>
        </div>
        {_chart_html(chart)}
        {notes}
      </div>"""


def _nav_bar(active: str = "") -> str:
    def lnk(href, label, key):
        if active == key:
            s = "color:#fff; font-weight:600; border-bottom:2px solid rgba(255,255,255,0.8); padding-bottom:2px;"
        else:
            s = "color:rgba(255,255,255,0.7); font-weight:500;"
        return f'<a href="{href}" style="text-decoration:none; font-size:14px; {s}">{label}</a>'
    return (
        '<nav style="background:#0f766e;">'
        '<div style="padding:0 24px; height:52px; display:flex; align-items:center; gap:20px;">'
        '<span style="font-weight:800; color:#fff; font-size:15px; margin-right:8px;">VitaShifa</span>'
        + lnk("/reminders", "Reminders", "reminders")
        + lnk("/emergency", "Emergency", "emergency")
        + '<form method="post" action="/logout" style="margin:0 0 0 auto;">'
        '<button type="submit" style="background:transparent; border:1px solid rgba(255,255,255,0.4);'
        ' color:rgba(255,255,255,0.8); border-radius:6px; padding:4px 12px;'
        ' font-size:13px; cursor:pointer; font-family:inherit;">Log Out</button>'
        '</form>'
        '</div>'
        '</nav>'
    )


PAGE_STYLE = """
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <script>
    // Server computes "today" and "now" in the browser's timezone from this cookie.
    document.cookie = "tz_offset=" + new Date().getTimezoneOffset() + "; path=/; max-age=31536000; SameSite=Lax";
  </script>
  <style>
    body { font-family: system-ui, sans-serif; background: #f5f5f5; margin: 0; padding: 0; color: #222; }
    .container { max-width: 640px; margin: 0 auto; padding: 24px; }
    h1 { margin-bottom: 4px; }
    h2 { font-size: 16px; margin: 20px 0 8px; }
    .card { background: #fff; border: 1px solid #e0e0e0; border-radius: 8px; padding: 16px; margin: 12px 0; }
    .card-name { font-size: 17px; font-weight: 600; }
    .card-ts { font-size: 12px; color: #888; margin-top: 2px; }
    .card-notes { margin: 10px 0 0; font-size: 14px; color: #444; }
    .med-dose { font-size: 12px; color: #0f766e; font-weight: 700; }
    .btn-primary { background: #0f766e; color: #fff; border: none; border-radius: 8px;
                   padding: 10px 22px; font-size: 15px; cursor: pointer; font-weight: 600; }
    .btn-primary:hover { background: #115e59; }
    .form-group { margin-bottom: 20px; }
    label { display: block; font-weight: 600; font-size: 14px; margin-bottom: 6px; }
    input[type=text], input[type=password], input[type=email] { width: 100%; box-sizing: border-box;
      border: 1px solid #d1d5db; border-radius: 6px; padding: 8px 10px; font-size: 15px; font-family: inherit; }
    .alert { background: #fee2e2; border: 1px solid #fca5a5; color: #b91c1c;
             border-radius: 6px; padding: 10px 14px; margin-bottom: 16px; font-size: 14px; }
    .empty { color: #888; font-style: italic; margin-top: 16px; }
    .dose-row { display: flex; align-items: center; gap: 12px; background: #fff; border: 1px solid #eef2f7;
                border-radius: 8px; padding: 8px 12px; margin-bottom: 6px; }
    .dose-time { font-weight: 700; font-variant-numeric: tabular-nums; }
    .dose-name { flex: 1; }
    .dose-chip { font-size: 11px; font-weight: 700; border-radius: 999px; padding: 3px 8px; }
    .dose-chip-overdue { background: #fee2e2; color: #991b1b; border: 1px solid #fecaca; }
    .dose-chip-pending { background: #eff6ff; color: #1d4ed8; border: 1px solid #bfdbfe; }
    .chart-row { display: flex; gap: 8px; margin-top: 12px; }
    .chart-day { display: flex; flex-direction: column; align-items: center; gap: 3px; }
    .chart-day small { font-size: 11px; color: #6b7280; }
    .chart-dot { width: 22px; height: 22px; border-radius: 50%; }
    .contact { display: flex; justify-content: space-between; align-items: center; }
    .contact a { font-size: 20px; font-weight: 800; color: #b91c1c; text-decoration: none; }
  </style>
"""
