"""Server-rendered HTML for the guest and admin pages.

Every value that reaches the markup goes through ``html.escape``.
"""

from __future__ import annotations

import html
from datetime import datetime
from typing import Iterable

from filedrop.models import FileUpload, UploadLink
from filedrop.utils.formatting import format_file_size

BASE_STYLE = """
:root { --bg:#0b0d10; --card:#151a20; --fg:#e7edf3; --muted:#9fb0c3; --btn:#2a7cff; --chip:#2b3340; --err:#ff6b6b; --ok:#3ecf8e; }
html,body { height:100%; }
body { margin:0; background:var(--bg); color:var(--fg); font-family: ui-sans-serif, system-ui, -apple-system, Segoe UI, Roboto, Helvetica, Arial; }
.wrap { max-width:960px; margin:0 auto; padding:28px 16px; }
h1 { font-size:22px; margin:0 0 12px; }
h2 { font-size:18px; margin:18px 0 8px; }
.card { background:var(--card); border-radius:18px; padding:18px; box-shadow:0 10px 30px rgba(0,0,0,.25); margin-top:14px; }
.row { display:flex; gap:12px; align-items:center; flex-wrap:wrap; }
nav a { color:var(--fg); margin-right:14px; text-decoration:none; }
input[type=text], input[type=password], input[type=number] { background:#0f1318; color:var(--fg); border:1px solid #222a33; border-radius:10px; padding:10px 12px; min-width:260px; }
label { display:block; margin:10px 0 4px; color:var(--muted); }
button, .btn { background:var(--btn); color:white; border:0; border-radius:10px; padding:10px 14px; cursor:pointer; font-weight:600; text-decoration:none; display:inline-block; }
button.secondary, .chip { background:var(--chip); color:#d7e1ea; }
button.danger { background:#b3261e; }
table { width:100%; border-collapse: collapse; margin-top:14px; }
th, td { text-align:left; padding:10px 8px; border-bottom:1px solid #24303d; vertical-align: top; }
.muted { color:var(--muted); }
.small { font-size:12px; }
.mono { font-family: ui-monospace, SFMono-Regular, Menlo, Consolas, "Liberation Mono", monospace; }
.error { color:var(--err); }
.success { color:var(--ok); }
.stat { font-size:32px; font-weight:700; }
form.inline { display:inline; }
"""

e = html.escape


def _fmt_dt(value: datetime | None) -> str:
    return value.strftime("%Y-%m-%d %H:%M UTC") if value else "Never"


def _messages(error: str | None = None, success: str | None = None) -> str:
    out = ""
    if error:
        out += f'<p class="error" role="alert">{e(error)}</p>'
    if success:
        out += f'<p class="success">{e(success)}</p>'
    return out


def layout(title: str, body: str, username: str | None = None) -> str:
    nav = ""
    if username:
        nav = f"""
    <nav class="row" style="justify-content: space-between;">
      <div>
        <a href="/admin">Dashboard</a>
        <a href="/admin/links">Links</a>
        <a href="/admin/uploads">Uploads</a>
        <a href="/admin/change-password">Password</a>
      </div>
      <form class="inline" method="post" action="/logout">
        <span class="muted small">{e(username)}</span>
        <button class="secondary" type="submit">Log out</button>
      </form>
    </nav>"""
    return f"""<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8"/>
  <meta name="viewport" content="width=device-width, initial-scale=1"/>
  <title>{e(title)} · FileDrop</title>
  <style>{BASE_STYLE}</style>
</head>
<body>
  <div class="wrap">{nav}
{body}
  </div>
</body>
</html>"""


def index_page() -> str:
    return layout("Welcome", """
    <h1>FileDrop</h1>
    <div class="card">
      <p>Got an upload link? Open it to send your files.</p>
      <p class="muted small">Administrators can <a class="btn secondary" href="/login">log in</a> to manage links and files.</p>
    </div>""")


def upload_page(
    token: str,
    link: UploadLink | None,
    error: str | None = None,
    success: str | None = None,
) -> str:
    if link is None or not link.is_valid():
        name = link.name if link is not None else "Expired Link"
        body = f"""
    <h1>{e(name)}</h1>
    <div class="card">{_messages(error or (None if success else "Upload link has expired or is inactive"), success)}</div>"""
        return layout("Upload", body)

    body = f"""
    <h1>{e(link.name)}</h1>
    <div class="card">
      {_messages(error, success)}
      <p class="muted">Remaining quota: <strong>{e(link.formatted_remaining)}</strong> of {e(link.formatted_max_size)}</p>
      <p class="muted small">Link expires: {e(_fmt_dt(link.expires_at))}</p>
      <form method="post" action="/upload/{e(token)}" enctype="multipart/form-data">
        <label for="file">File</label>
        <input id="file" type="file" name="file" required/>
        <div class="row" style="margin-top:14px;"><button type="submit">Upload</button></div>
      </form>
    </div>"""
    return layout("Upload", body)


def login_page(error: str | None = None) -> str:
    return layout("Login", f"""
    <h1>Admin login</h1>
    <div class="card">
      {_messages(error)}
      <form method="post" action="/login">
        <label for="username">Username</label>
        <input id="username" type="text" name="username" autocomplete="username" required/>
        <label for="password">Password</label>
        <input id="password" type="password" name="password" autocomplete="current-password" required/>
        <div class="row" style="margin-top:14px;"><button type="submit">Log in</button></div>
      </form>
    </div>""")


def dashboard_page(username: str, active_links: int, total_uploads: int, total_bytes: int) -> str:
    return layout("Dashboard", f"""
    <h1>Dashboard</h1>
    <div class="row">
      <div class="card"><div class="stat">{active_links}</div><div class="muted">Active links</div></div>
      <div class="card"><div class="stat">{total_uploads}</div><div class="muted">Uploaded files</div></div>
      <div class="card"><div class="stat">{e(format_file_size(total_bytes))}</div><div class="muted">Stored</div></div>
    </div>
    <div class="card row">
      <a class="btn" href="/admin/links/create">Create upload link</a>
      <a class="btn secondary" href="/admin/uploads">Browse uploads</a>
    </div>""", username=username)


def _link_status(link: UploadLink) -> str:
    if not link.is_active:
        return "Inactive"
    if link.is_expired():
        return "Expired"
    if link.remaining_quota <= 0:
        return "Quota used up"
    return "Active"


def links_page(username: str, links: Iterable[UploadLink], base_url: str, error: str | None = None) -> str:
    rows = []
    for link in links:
        url = f"{base_url}/upload/{link.token}"
        toggle_label = "Deactivate" if link.is_active else "Activate"
        rows.append(f"""
        <tr>
          <td><div>{e(link.name)}</div><div class="muted small">created {e(_fmt_dt(link.created_at))}</div></td>
          <td class="mono small"><a href="{e(url)}">{e(url)}</a></td>
          <td>{e(link.formatted_remaining)} / {e(link.formatted_max_size)}</td>
          <td class="small">{e(_fmt_dt(link.expires_at))}</td>
          <td>{e(_link_status(link))}</td>
          <td>
            <form class="inline" method="post" action="/admin/links/{e(link.id)}/toggle"><button class="secondary" type="submit">{toggle_label}</button></form>
            <form class="inline" method="post" action="/admin/links/{e(link.id)}/delete"><button class="danger" type="submit">Delete</button></form>
          </td>
        </tr>""")
    table = (
        "<table><thead><tr><th>Name</th><th>Upload URL</th><th>Quota left</th>"
        "<th>Expires</th><th>Status</th><th></th></tr></thead>"
        f"<tbody>{''.join(rows)}</tbody></table>"
        if rows else '<p class="muted">No upload links yet.</p>'
    )
    return layout("Upload links", f"""
    <h1>Upload links</h1>
    <div class="card">
      {_messages(error)}
      <a class="btn" href="/admin/links/create">Create upload link</a>
      {table}
    </div>""", username=username)


def create_link_page(username: str, error: str | None = None, form: dict | None = None) -> str:
    form = form or {}
    return layout("Create link", f"""
    <h1>Create upload link</h1>
    <div class="card">
      {_messages(error)}
      <form method="post" action="/admin/links/create">
        <label for="name">Name</label>
        <input id="name" type="text" name="name" value="{e(str(form.get('name', '')))}" required/>
        <label for="max_file_size_mb">Total quota (MB)</label>
        <input id="max_file_size_mb" type="number" name="max_file_size_mb" min="0.01" step="any" value="{e(str(form.get('max_file_size_mb', '100')))}" required/>
        <label for="expires_in_hours">Expires in hours (empty for never)</label>
        <input id="expires_in_hours" type="number" name="expires_in_hours" min="0" step="1" value="{e(str(form.get('expires_in_hours', '')))}"/>
        <div class="row" style="margin-top:14px;"><button type="submit">Create</button></div>
      </form>
    </div>""", username=username)


def uploads_page(username: str, groups: Iterable[tuple[UploadLink, list[FileUpload]]]) -> str:
    sections = []
    for link, uploads in groups:
        rows = "".join(f"""
          <tr>
            <td>{e(u.original_filename)}<div class="muted small">{e(u.mime_type)}</div></td>
            <td>{e(u.formatted_size)}</td>
            <td class="small">{e(_fmt_dt(u.uploaded_at))}</td>
            <td>
              <a class="btn secondary" href="/admin/uploads/{e(u.id)}/download">Download</a>
              <form class="inline" method="post" action="/admin/uploads/{e(u.id)}/delete"><button class="danger" type="submit">Delete</button></form>
            </td>
          </tr>""" for u in uploads)
        sections.append(f"""
      <h2>{e(link.name)} <span class="muted small">{len(uploads)} file(s) · {e(link.formatted_remaining)} left</span></h2>
      <table><thead><tr><th>File</th><th>Size</th><th>Uploaded</th><th></th></tr></thead><tbody>{rows}</tbody></table>""")
    content = "".join(sections) or '<p class="muted">No files uploaded yet.</p>'
    return layout("Uploads", f"""
    <h1>Uploaded files</h1>
    <div class="card">{content}</div>""", username=username)


def change_password_page(username: str, error: str | None = None, success: str | None = None) -> str:
    return layout("Change password", f"""
    <h1>Change password</h1>
    <div class="card">
      {_messages(error, success)}
      <form method="post" action="/admin/change-password">
        <label for="current_password">Current password</label>
        <input id="current_password" type="password" name="current_password" autocomplete="current-password" required/>
        <label for="new_password">New password</label>
        <input id="new_password" type="password" name="new_password" autocomplete="new-password" required/>
        <label for="confirm_password">Confirm new password</label>
        <input id="confirm_password" type="password" name="confirm_password" autocomplete="new-password" required/>
        <div class="row" style="margin-top:14px;"><button type="submit">Change password</button></div>
      </form>
    </div>""", username=username)


def error_page(status_code: int, message: str) -> str:
    return layout("Error", f"""
    <h1>{status_code}</h1>
    <div class="card"><p>{e(message)}</p><p><a class="btn secondary" href="/">Home</a></p></div>""")
