"""HTML rendering of agenda snapshots and of the kiosk page shell.

render_agenda() produces the fragment pushed over the /data WebSocket; the
page's script swaps it into div#agenda. All functions are pure.
"""

import json
from datetime import timedelta
from html import escape

from src.kiosk.agenda import AgendaSnapshot, ContributionView, PresenterView, SessionView
from src.kiosk.errors import RenderError

PAGE_STYLE = """
body {
    font-family: sans-serif;
}
h2 {
    color:      #fff;
    background: #034f84;
    margin-bottom: 2px;
}
h2#current-session {
    color:      #fff;
    background: #f7786b;
}
h3 {
    background: #92a8d1;
    margin-top: 1px;
    margin-bottom: 1px;
}
#current-contribution {
    background: #f7cac9;
}
"""

PAGE_SCRIPT = """
var sock = null;

function update(data) {
    var doc = document.getElementById("agenda");
    doc.innerHTML = data;
};

window.onload = function() {
    sock = new WebSocket(%s);
    sock.onmessage = function(event) {
        update(event.data);
    };
};
"""


def format_duration(duration: timedelta | None) -> str:
    """Render a duration like Go's time.Duration: 1h30m0s, 20m0s, 45s."""
    if duration is None:
        return ""
    total = int(duration.total_seconds())
    sign = "-" if total < 0 else ""
    total = abs(total)
    hours, rest = divmod(total, 3600)
    minutes, seconds = divmod(rest, 60)
    if hours:
        return f"{sign}{hours}h{minutes}m{seconds}s"
    if minutes:
        return f"{sign}{minutes}m{seconds}s"
    return f"{sign}{seconds}s"


def _id_attr(marker: str) -> str:
    return f' id="{marker}"' if marker else ""


def render_presenters(presenters: tuple[PresenterView, ...]) -> str:
    """Name (<em>Affiliation</em>), comma separated."""
    parts = []
    for p in presenters:
        text = escape(p.name)
        if p.affiliation:
            text += f" (<em>{escape(p.affiliation)}</em>)"
        parts.append(text)
    return ", ".join(parts)


def _render_contribution(c: ContributionView) -> str:
    lines = [
        f'\t<div{_id_attr(c.marker)} style="border: solid 1px; margin-bottom: 1px">',
        f"\t\t<h3{_id_attr(c.marker)}>{escape(c.start)} - {escape(c.stop)}</h3>",
        f"\t\t<b>{escape(c.title)}</b> (<i>{format_duration(c.duration)}</i>)",
    ]
    if c.presenters:
        lines.append(f"\t\t<p>{render_presenters(c.presenters)}</p>")
    lines.append("\t</div>")
    return "\n".join(lines)


def _render_session(s: SessionView) -> str:
    heading = f"{escape(s.title)} ({escape(s.start)} - {escape(s.stop)})"
    if s.room:
        heading += f" Room: {escape(s.room)}"
    lines = [f"<h2{_id_attr(s.marker)}>{heading}</h2>"]
    lines.extend(_render_contribution(c) for c in s.contributions)
    return "\n".join(lines)


def render_agenda(snapshot: AgendaSnapshot) -> str:
    """Render a snapshot into the agenda HTML fragment.

    Raises:
        RenderError: If a view does not carry the fields the markup needs.
    """
    try:
        parts = [f'<h1 id="agenda-day">{escape(snapshot.label)}</h1>']
        parts.extend(_render_session(s) for s in snapshot.sessions)
    except (AttributeError, TypeError) as e:
        raise RenderError(f"could not render agenda {snapshot!r}: {e}") from e
    return "\n".join(parts) + "\n"


def render_page(ws_url: str, title: str) -> str:
    """Render the kiosk page shell connecting to the /data WebSocket."""
    script = PAGE_SCRIPT % json.dumps(ws_url)
    return (
        "<!DOCTYPE html>\n"
        "<html>\n"
        "\t<head>\n"
        f"\t\t<title>{escape(title)}</title>\n"
        f"\t\t<style>{PAGE_STYLE}\t\t</style>\n"
        f'\t\t<script type="text/javascript">{script}\t\t</script>\n'
        "\t</head>\n"
        "\n"
        "\t<body>\n"
        '\t\t<div id="agenda"></div>\n'
        "\t</body>\n"
        "</html>\n"
    )
