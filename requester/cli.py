from __future__ import annotations

import json
import sys
import typing

import click
import httpx

from ._exceptions import RequesterError

# ---------------------------------------------------------------------------
# Rich output helpers (graceful fallback when rich is not installed)
# ---------------------------------------------------------------------------

try:
    from rich.console import Console
    from rich.syntax import Syntax
    from rich.text import Text

    HAS_RICH = True
except ImportError:  # pragma: no cover
    HAS_RICH = False


def _status_color(status_code: int) -> str:
    """Return a rich color name based on HTTP status category."""
    if status_code < 200:
        return "cyan"
    elif status_code < 300:
        return "green"
    elif status_code < 400:
        return "yellow"
    elif status_code < 500:
        return "red"
    else:
        return "bold red"


def is_binary_content(content: bytes) -> bool:
    return b"\0" in content


def is_binary_content_type(content_type: str) -> bool:
    text_types = (
        "text/",
        "application/json",
        "application/xml",
        "application/x-www-form-urlencoded",
    )
    ct = content_type.lower().split(";")[0].strip()
    return not any(ct.startswith(t) for t in text_types) and ct != ""


def _body_lines(response: typing.Any) -> typing.Iterator[tuple[str, str]]:
    """Yield ``(kind, text)`` pairs describing the body for display."""
    content = response.body
    if not content:
        return
    content_type = response.headers.get("content-type", "")
    if is_binary_content_type(content_type) or is_binary_content(content):
        yield "binary", f"<{len(content)} bytes of binary data>"
    elif "application/json" in content_type:
        try:
            data = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            yield "text", response.text
        else:
            yield "json", json.dumps(data, indent=4, ensure_ascii=False)
    else:
        yield "text", response.text


# ---------------------------------------------------------------------------
# Plain-text formatter (used with --no-color or when rich is missing)
# ---------------------------------------------------------------------------


def format_response_plain(response: typing.Any) -> str:
    lines: list[str] = [response.status or str(response.status_code)]
    for key, value in response.headers.items():
        lines.append(f"{key}: {value}")
    lines.append("")
    lines.extend(text for _, text in _body_lines(response))
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Rich formatter
# ---------------------------------------------------------------------------


def print_response_rich(console: Console, response: typing.Any) -> None:
    """Pretty-print a response using rich."""
    color = _status_color(response.status_code)

    status_line = Text()
    status_line.append(response.status or str(response.status_code), style=f"bold {color}")
    console.print(status_line)

    for key, value in response.headers.items():
        header_text = Text()
        header_text.append(f"{key}", style="dim cyan")
        header_text.append(": ", style="dim")
        header_text.append(value)
        console.print(header_text)

    console.print()

    for kind, text in _body_lines(response):
        if kind == "binary":
            console.print(f"[dim]{text}[/dim]", highlight=False)
        elif kind == "json":
            console.print(Syntax(text, "json", theme="monokai"))
        else:
            console.print(text, markup=False, highlight=False)


# ---------------------------------------------------------------------------
# Option parsing helpers (curl-style -H "Key: Value", -q key=value)
# ---------------------------------------------------------------------------


def parse_header(header: str) -> tuple[str, str]:
    """Parse a 'Key: Value' header string."""
    if ":" not in header:
        raise click.BadParameter(
            f"Invalid header format: '{header}'. Expected 'Key: Value'."
        )
    key, _, value = header.partition(":")
    return key.strip(), value.strip()


def parse_pair(pair: str) -> tuple[str, str]:
    """Parse a 'key=value' option string."""
    if "=" not in pair:
        raise click.BadParameter(f"Invalid format: '{pair}'. Expected 'key=value'.")
    key, _, value = pair.partition("=")
    return key.strip(), value


# ---------------------------------------------------------------------------
# CLI command
# ---------------------------------------------------------------------------


@click.command(help="Send an HTTP request and print the response.")
@click.argument("url")
@click.option("-m", "--method", default="GET", help="HTTP method.")
@click.option(
    "-H",
    "--header",
    "headers",
    multiple=True,
    help='Add a header, e.g. -H "Authorization: Bearer token".',
)
@click.option(
    "-q", "--query", "queries", multiple=True, help="Add a query parameter key=value."
)
@click.option(
    "-c", "--content", default=None, help="Content to send in the request body."
)
@click.option(
    "-j", "--json-data", "json_body", default=None, help="JSON data to send."
)
@click.option(
    "-F", "--field", "fields", multiple=True, help="Add a multipart form field key=value."
)
@click.option(
    "-f", "--file", "files", multiple=True, help="Upload a file as multipart key=path."
)
@click.option("--timeout", type=float, default=None, help="Timeout in seconds.")
@click.option("-v", "--verbose", is_flag=True, default=False, help="Verbose output.")
@click.option(
    "--no-color", is_flag=True, default=False, help="Disable colored output."
)
def main(
    url: str,
    method: str,
    headers: tuple[str, ...],
    queries: tuple[str, ...],
    content: str | None,
    json_body: str | None,
    fields: tuple[str, ...],
    files: tuple[str, ...],
    timeout: float | None,
    verbose: bool,
    no_color: bool,
) -> None:
    import requester as _requester_mod

    use_rich = HAS_RICH and not no_color and sys.stdout.isatty()

    try:
        client = _requester_mod.Client(timeout=timeout)
        request = client.new(url)

        for h in headers:
            key, value = parse_header(h)
            request.with_header(key, value)
        for q in queries:
            key, value = parse_pair(q)
            request.with_query(key, value)

        if json_body is not None:
            request.with_json_body(json.loads(json_body))
        elif content is not None:
            request.with_body(content)

        if verbose:
            click.echo(f"> {method.upper()} {url}", err=True)

        if fields or files:
            for f in fields:
                key, value = parse_pair(f)
                request.with_form_data_field(key, value)
            for f in files:
                key, path = parse_pair(f)
                request.with_form_data_file(key, path)
            response = request.upload_by(method if method.upper() != "GET" else "POST")
        else:
            response = request.send_by(method)

        if use_rich:
            print_response_rich(Console(), response)
        else:
            click.echo(format_response_plain(response))

        if response.status_code >= 300:
            sys.exit(1)

    except (RequesterError, httpx.HTTPError, OSError, json.JSONDecodeError) as exc:
        if use_rich:
            console = Console(stderr=True)
            console.print(f"[bold red]{type(exc).__name__}[/bold red]: {exc}")
        else:
            click.echo(f"{type(exc).__name__}: {exc}", err=True)
        sys.exit(1)
