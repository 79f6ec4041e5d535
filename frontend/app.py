from __future__ import annotations

import html
import json
import logging
import secrets
from collections import OrderedDict
from dataclasses import dataclass, field
from http import HTTPStatus
from http.cookies import SimpleCookie
from typing import Any, Callable, Iterable, Optional
from urllib.parse import parse_qs, urlparse

from backend.tripticket import TripTicketApp
from backend.tripticket.config import Settings, configure_logging
from backend.tripticket.forms import SECTION_TITLES, FieldType, TicketField, editable_fields, list_sections
from backend.tripticket.tickets import SubmissionInProgress, TripTicketForm
from backend.tripticket.totals import FUEL_INPUTS

logger = logging.getLogger(__name__)

SESSION_COOKIE = "trip_ticket_session"
XLSX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
MAX_SESSIONS = 500

LIVE_TOTALS_SCRIPT = """
<script>
  (function () {
    var form = document.getElementById("trip-ticket");
    if (!form) { return; }
    var inputs = %(inputs)s;
    function refresh() {
      var body = new URLSearchParams();
      inputs.forEach(function (name) { body.append(name, form.elements[name].value); });
      fetch("/api/fuel-totals", {method: "POST", body: body, credentials: "same-origin"})
        .then(function (res) { return res.json(); })
        .then(function (totals) {
          if (totals.fuelTotal !== null) { form.elements.fuelTotal.value = totals.fuelTotal; }
          if (totals.fuelBalanceEnd !== null) { form.elements.fuelBalanceEnd.value = totals.fuelBalanceEnd; }
        });
    }
    if (window.fetch) {
      inputs.forEach(function (name) { form.elements[name].addEventListener("input", refresh); });
    }
    form.addEventListener("submit", function (event) {
      var button = event.submitter;
      if (!button || button.value !== "save") { return; }
      if (form.dataset.saving) { event.preventDefault(); return; }
      form.dataset.saving = "1";
      var hidden = document.createElement("input");
      hidden.type = "hidden";
      hidden.name = "action";
      hidden.value = "save";
      form.appendChild(hidden);
      button.disabled = true;
      button.textContent = "Saving...";
    });
  })();
</script>
"""


@dataclass
class Request:
    method: str
    target: str
    headers: dict[str, str]
    body: bytes = b""

    def __post_init__(self) -> None:
        parsed = urlparse(self.target)
        self.path = parsed.path or "/"
        self.query = parse_qs(parsed.query)
        self.form: dict[str, list[str]] = {}
        self.json: Any = None
        if self.method in {"POST", "PUT"}:
            content_type = self.headers.get("Content-Type", "")
            if "application/x-www-form-urlencoded" in content_type:
                self.form = parse_qs(self.body.decode("utf-8"), keep_blank_values=True)
            elif "application/json" in content_type and self.body:
                try:
                    self.json = json.loads(self.body.decode("utf-8"))
                except ValueError:
                    self.json = None
        cookie_header = self.headers.get("Cookie", "")
        cookie = SimpleCookie(cookie_header)
        self.cookies = {key: morsel.value for key, morsel in cookie.items()}

    def form_value(self, name: str, default: Optional[str] = None) -> Optional[str]:
        values = self.form.get(name)
        return values[0] if values else default

    def cookie(self, name: str) -> Optional[str]:
        return self.cookies.get(name)


@dataclass
class Response:
    status: int = HTTPStatus.OK
    headers: list[tuple[str, str]] = field(default_factory=list)
    body: bytes | str = ""

    def set_cookie(self, name: str, value: str, *, path: str = "/", max_age: Optional[int] = None) -> None:
        cookie = SimpleCookie()
        cookie[name] = value
        cookie[name]["path"] = path
        cookie[name]["httponly"] = True
        if max_age is not None:
            cookie[name]["max-age"] = str(max_age)
        header_value = cookie.output(header="")
        self.headers.append(("Set-Cookie", header_value.strip()))

    def add_header(self, name: str, value: str) -> None:
        self.headers.append((name, value))


@dataclass
class TicketSession:
    token: str
    form: TripTicketForm
    is_new: bool = False


class TripTicketWebApp:
    def __init__(self, service: TripTicketApp, *, max_sessions: int = MAX_SESSIONS) -> None:
        self.service = service
        self.max_sessions = max_sessions
        self.forms: OrderedDict[str, TripTicketForm] = OrderedDict()
        self.flash_messages: dict[str, list[tuple[str, str]]] = {}

    # Public API -----------------------------------------------------------------
    def wsgi_app(self, environ: dict[str, Any], start_response: Callable) -> Iterable[bytes]:
        method = environ["REQUEST_METHOD"]
        target = environ.get("RAW_URI") or environ.get("PATH_INFO", "/")
        if environ.get("QUERY_STRING") and "?" not in target:
            target = f"{target}?{environ['QUERY_STRING']}"
        length = int(environ.get("CONTENT_LENGTH") or 0)
        body = environ["wsgi.input"].read(length) if length else b""
        headers = {key: value for key, value in environ.items() if key.startswith("HTTP_")}
        if "CONTENT_TYPE" in environ:
            headers["Content-Type"] = environ["CONTENT_TYPE"]
        if "HTTP_COOKIE" in environ:
            headers["Cookie"] = environ["HTTP_COOKIE"]
        request = Request(method=method, target=target, headers=headers, body=body)
        response = self.handle(request)
        status = HTTPStatus(response.status)
        start_response(f"{status.value} {status.phrase}", response.headers)
        body = response.body if isinstance(response.body, bytes) else response.body.encode("utf-8")
        return [body]

    def handle(self, request: Request) -> Response:
        handler = self._match_route(request)
        if not handler:
            return self._not_found()
        session = self._session(request)
        response = handler(request, session)
        if session.is_new:
            response.set_cookie(SESSION_COOKIE, session.token, path="/")
        if not any(name.lower() == "content-type" for name, _ in response.headers):
            response.add_header("Content-Type", "text/html; charset=utf-8")
        content_type = next(value for name, value in response.headers if name.lower() == "content-type")
        if not (300 <= response.status < 400) and content_type.startswith("text/html") and isinstance(response.body, str):
            messages = self.flash_messages.pop(session.token, [])
            response.body = response.body.replace("<!--FLASH-->", self._render_messages(messages))
        return response

    def run(self, host: str = "127.0.0.1", port: int = 8000) -> None:
        from wsgiref.simple_server import make_server

        with make_server(host, port, self.wsgi_app) as httpd:
            logger.info("Serving trip tickets on http://%s:%s (sink: %s)", host, port, self.service.settings.sink_url)
            httpd.serve_forever()

    # Routing --------------------------------------------------------------------
    def _match_route(self, request: Request) -> Optional[Callable[[Request, TicketSession], Response]]:
        routes: dict[tuple[str, str], Callable[[Request, TicketSession], Response]] = {
            ("GET", "/"): self._home,
            ("GET", "/trip-ticket"): self._ticket_get,
            ("POST", "/trip-ticket"): self._ticket_post,
            ("POST", "/trip-ticket/new"): self._ticket_new,
            ("GET", "/trip-ticket/export"): self._ticket_export,
            ("POST", "/api/fuel-totals"): self._fuel_totals,
        }
        return routes.get((request.method, request.path))

    # Session helpers ------------------------------------------------------------
    def _session(self, request: Request) -> TicketSession:
        token = request.cookie(SESSION_COOKIE)
        if token and token in self.forms:
            self.forms.move_to_end(token)
            return TicketSession(token=token, form=self.forms[token])
        token = secrets.token_urlsafe(24)
        form = self.service.new_form()
        self.forms[token] = form
        while len(self.forms) > self.max_sessions:
            stale, _ = self.forms.popitem(last=False)
            self.flash_messages.pop(stale, None)
            logger.debug("Dropped idle trip ticket session %s", stale[:8])
        return TicketSession(token=token, form=form, is_new=True)

    def _flash(self, session: TicketSession, category: str, message: str) -> None:
        self.flash_messages.setdefault(session.token, []).append((category, message))

    # Route handlers -------------------------------------------------------------
    def _home(self, request: Request, session: TicketSession) -> Response:
        return self._redirect("/trip-ticket")

    def _ticket_get(self, request: Request, session: TicketSession) -> Response:
        return self._page("Driver's Trip Ticket", self._render_ticket(session.form))

    def _ticket_post(self, request: Request, session: TicketSession) -> Response:
        form = session.form
        form.update(self._collect_entries(request))
        action = request.form_value("action") or "save"
        if action != "save":
            return self._page("Driver's Trip Ticket", self._render_ticket(form))
        try:
            outcome = form.submit()
        except SubmissionInProgress as exc:
            self._flash(session, "error", str(exc))
            return self._page("Driver's Trip Ticket", self._render_ticket(form))
        if outcome.succeeded:
            self._flash(session, "success", outcome.message)
            return self._redirect("/trip-ticket")
        self._flash(session, "error", outcome.message)
        return self._page("Driver's Trip Ticket", self._render_ticket(form))

    def _ticket_new(self, request: Request, session: TicketSession) -> Response:
        self.forms[session.token] = self.service.new_form()
        self._flash(session, "info", "Started a new trip ticket.")
        return self._redirect("/trip-ticket")

    def _ticket_export(self, request: Request, session: TicketSession) -> Response:
        try:
            filename, payload = self.service.export_form(session.form)
        except ValueError as exc:
            self._flash(session, "error", str(exc))
            return self._redirect("/trip-ticket")
        response = Response(headers=[("Content-Type", XLSX_CONTENT_TYPE)], body=payload)
        response.add_header("Content-Disposition", f'attachment; filename="{filename}"')
        return response

    def _fuel_totals(self, request: Request, session: TicketSession) -> Response:
        if request.json is not None:
            if not isinstance(request.json, dict):
                return self._json({"error": "Expected a JSON object."}, status=HTTPStatus.BAD_REQUEST)
            source = request.json
        else:
            source = {name: request.form_value(name) for name in request.form}
        entries = {name: source[name] for name in FUEL_INPUTS if name in source}
        session.form.update(entries)
        values = session.form.values
        return self._json({"fuelTotal": values.get("fuelTotal"), "fuelBalanceEnd": values.get("fuelBalanceEnd")})

    # Utility responses ----------------------------------------------------------
    def _page(self, title: str, content: str) -> Response:
        body = f"""
        <!doctype html>
        <html lang=\"en\">
          <head>
            <meta charset=\"utf-8\" />
            <meta name=\"viewport\" content=\"width=device-width, initial-scale=1\" />
            <title>{html.escape(title)} - Motorpool Division</title>
          </head>
          <body>
            <main class=\"page\">
              <!--FLASH-->
              {content}
            </main>
          </body>
        </html>
        """
        return Response(body=body)

    def _json(self, payload: dict[str, Any], *, status: int = HTTPStatus.OK) -> Response:
        return Response(
            status=status,
            headers=[("Content-Type", "application/json")],
            body=json.dumps(payload),
        )

    def _redirect(self, location: str) -> Response:
        response = Response(status=HTTPStatus.SEE_OTHER)
        response.add_header("Location", location)
        response.body = f"<html><body>Redirecting to <a href=\"{html.escape(location)}\">{html.escape(location)}</a></body></html>"
        return response

    def _not_found(self) -> Response:
        body = "<html><body><h1>404 Not Found</h1></body></html>"
        return Response(status=HTTPStatus.NOT_FOUND, headers=[("Content-Type", "text/html; charset=utf-8")], body=body)

    # Rendering helpers ----------------------------------------------------------
    def _render_messages(self, messages: Iterable[tuple[str, str]]) -> str:
        items = [f'<li class="flash {html.escape(cat)}">{html.escape(msg)}</li>' for cat, msg in messages]
        if not items:
            return ""
        return '<ul class="flash-messages">' + "".join(items) + "</ul>"

    def _render_ticket(self, form: TripTicketForm) -> str:
        blocks: list[str] = []
        for section, items in list_sections():
            fields_html = "".join(self._render_field(item, form) for item in items)
            title = SECTION_TITLES[section]
            heading = f'<div class="section-title">{html.escape(title)}</div>' if title else ""
            blocks.append(f'<div class="section section-{section}">{heading}{fields_html}</div>')
            if section == "header":
                blocks.append('<div class="form-title">DRIVER&#8217;S TRIP TICKET</div>')
            if section == "certification":
                blocks.append(
                    '<p class="certify">I hereby certify the correctness of the above statement of record of travel.</p>'
                    '<p class="certify">I hereby certify that I used this car on official business as stated above.</p>'
                )
        script = LIVE_TOTALS_SCRIPT % {"inputs": json.dumps(list(FUEL_INPUTS))}
        return f"""
        <header class=\"letterhead\">
          <div>Form A</div>
          <div>Republic of the Philippines</div>
          <div>City Government of Pasig</div>
          <h1>OFFICE OF GENERAL SERVICES</h1>
          <h2>MOTORPOOL DIVISION</h2>
        </header>
        <form method=\"post\" action=\"/trip-ticket\" id=\"trip-ticket\" class=\"paper\" novalidate>
          {''.join(blocks)}
          <div class=\"actions\">
            <button type=\"submit\" name=\"action\" value=\"save\" id=\"save-button\">Save to Database</button>
            <button type=\"submit\" name=\"action\" value=\"recalculate\">Recalculate totals</button>
            <a class=\"button\" href=\"/trip-ticket/export\">Download (.xlsx)</a>
          </div>
        </form>
        <form method=\"post\" action=\"/trip-ticket/new\" class=\"actions\">
          <button type=\"submit\">New trip ticket</button>
        </form>
        {script}
        """

    def _render_field(self, item: TicketField, form: TripTicketForm) -> str:
        label = html.escape(item.label)
        value = html.escape(_display_value(form.values.get(item.id)))
        attrs = [f'id="{item.id}"', f'name="{item.id}"']
        if item.required:
            attrs.append("required")
        if item.read_only:
            attrs.append("readonly")
        if item.placeholder:
            attrs.append(f'placeholder="{html.escape(item.placeholder)}"')
        if item.multiline:
            control = f"<textarea {' '.join(attrs)}>{value}</textarea>"
        else:
            if item.field_type is FieldType.NUMBER:
                attrs.append('type="number" step="0.01"')
            elif item.field_type is FieldType.DATE:
                attrs.append('type="date"')
            control = f"<input {' '.join(attrs)} value=\"{value}\" />"
        error = form.errors.get(item.id)
        error_html = f'<span class="err">{html.escape(error)}</span>' if error else ""
        suffix = '<span class="unit">liters</span>' if item.section in {"fuel", "oil"} else ""
        return f"""
            <div class=\"form-field\">
              <label for=\"{item.id}\">{label}</label>
              {control}{suffix}
              {error_html}
            </div>
            """

    def _collect_entries(self, request: Request) -> dict[str, str]:
        entries: dict[str, str] = {}
        for item in editable_fields():
            raw = request.form_value(item.id)
            if raw is not None:
                entries[item.id] = raw
        return entries


def _display_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else str(value)
    return str(value)


def create_app(
    settings: Optional[Settings] = None,
    *,
    session: Any = None,
    max_sessions: int = MAX_SESSIONS,
) -> TripTicketWebApp:
    return TripTicketWebApp(TripTicketApp.create(settings, session=session), max_sessions=max_sessions)


app = create_app()


if __name__ == "__main__":  # pragma: no cover - manual execution helper
    configure_logging(app.service.settings.log_level)
    app.run()
