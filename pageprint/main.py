#!/usr/bin/env python3
"""
pageprint

- print:      render an HTML file or URL to PDF
- screenshot: render an HTML file or URL to PNG
- Local paths are turned into file:// URLs, remote URLs are used as-is
- Writes to the named output file, or to STDOUT when none is given
- Progress goes to STDERR so STDOUT stays a clean binary stream
"""

import argparse
import os
import re
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from playwright.sync_api import sync_playwright

DEFAULT_TIMEOUT_MS = 30 * 1000
AUTO_FORMAT = "auto"
AUTO_FORMAT_WIDTH = 1366

WAIT_UNTIL_CHOICES = ("load", "domcontentloaded", "networkidle", "commit")
# puppeteer spellings still show up in scripts
WAIT_UNTIL_ALIASES = {"networkidle0": "networkidle", "networkidle2": "networkidle"}

PAGE_HEIGHT_JS = (
    "Math.max(document.body.scrollHeight, document.body.offsetHeight, "
    "document.documentElement.clientHeight, document.documentElement.scrollHeight, "
    "document.documentElement.offsetHeight)"
)

URL_RE = re.compile(r"^[A-Za-z][\w+.-]*://(\S+)$")
LOCALHOST_RE = re.compile(r"^localhost[:?\d]*(?:[^:?\d]\S*)?$")
DOMAIN_RE = re.compile(r"^[^\s.]+\.\S{2,}$")
VIEWPORT_RE = re.compile(r"^(?P<width>\d+)[xX](?P<height>\d+)$")

VIEWPORT_USAGE = "Option --viewport must be in the format ###x### e.g. 800x600"


class InvalidArgument(ValueError):
    """Raised for malformed user input (cookie or viewport strings)."""


# ---------- options ----------

@dataclass(frozen=True)
class Viewport:
    width: int
    height: int


@dataclass(frozen=True)
class CommonOptions:
    url: str
    output: Optional[str] = None
    sandbox: bool = True
    timeout: int = DEFAULT_TIMEOUT_MS
    wait_until: str = "load"
    cookies: tuple = ()

    @staticmethod
    def _common_kwargs(args: argparse.Namespace) -> dict:
        return {
            "url": args.url,
            "output": args.output,
            "sandbox": args.sandbox,
            "timeout": args.timeout,
            "wait_until": WAIT_UNTIL_ALIASES.get(args.wait_until, args.wait_until),
            "cookies": tuple(args.cookie or ()),
        }


@dataclass(frozen=True)
class PrintOptions(CommonOptions):
    emulate_media: str = ""
    inject_js: str = ""
    scale: float = 1
    background: bool = True
    margin_top: str = "6.25mm"
    margin_right: str = "6.25mm"
    margin_bottom: str = "14.11mm"
    margin_left: str = "6.25mm"
    format: str = "Letter"
    landscape: bool = False
    display_header_footer: bool = False
    header_template: str = ""
    footer_template: str = ""
    javascript: bool = False

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> "PrintOptions":
        return cls(
            **cls._common_kwargs(args),
            emulate_media=args.emulate_media,
            inject_js=args.inject_js,
            scale=args.scale,
            background=args.background,
            margin_top=args.margin_top,
            margin_right=args.margin_right,
            margin_bottom=args.margin_bottom,
            margin_left=args.margin_left,
            format=args.format,
            landscape=args.landscape,
            display_header_footer=args.display_header_footer,
            header_template=args.header_template,
            footer_template=args.footer_template,
            javascript=args.javascript,
        )


@dataclass(frozen=True)
class ScreenshotOptions(CommonOptions):
    full_page: bool = True
    omit_background: bool = False
    viewport: Optional[Viewport] = None

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> "ScreenshotOptions":
        return cls(
            **cls._common_kwargs(args),
            full_page=args.full_page,
            omit_background=args.omit_background,
            viewport=args.viewport,
        )


# ---------- input parsing ----------

def is_url(value: str) -> bool:
    m = URL_RE.match(value)
    if not m:
        return False
    rest = m.group(1)
    return bool(LOCALHOST_RE.match(rest) or DOMAIN_RE.match(rest))

def resolve_target(value: str) -> str:
    if is_url(value):
        return value
    # abspath normalizes against the cwd without touching the filesystem
    return Path(os.path.abspath(value)).as_uri()

def build_cookies(cookie_strings: Sequence[str], url: str) -> List[Dict[str, str]]:
    cookies = []
    for cookie in cookie_strings:
        name, sep, value = cookie.partition(":")
        if not sep:
            raise InvalidArgument("cookie must contain : delimiter")
        cookies.append({"name": name, "value": value, "url": url})
    return cookies

def parse_viewport(value: Optional[str]) -> Optional[Viewport]:
    if value is None:
        return None
    m = VIEWPORT_RE.match(value)
    if not m:
        raise InvalidArgument(VIEWPORT_USAGE)
    return Viewport(width=int(m.group("width")), height=int(m.group("height")))


# ---------- browser helpers ----------

def log(message: str):
    print(message, file=sys.stderr)

def build_launch_options(sandbox: bool) -> dict:
    if sandbox:
        return {"headless": True, "chromium_sandbox": True}
    return {
        "headless": True,
        "chromium_sandbox": False,
        "args": ["--no-sandbox", "--disable-setuid-sandbox"],
    }

def navigate(page, url: str, opts: CommonOptions):
    log(f"Loading {url}")
    page.goto(url, timeout=opts.timeout, wait_until=opts.wait_until)

def js_read_wrapper_scripts():
    # Pages may ship <script id="before"> / <script id="after"> to wrap injected code
    return r"""
() => {
  const text = (sel) => {
    const el = document.querySelector(sel);
    return el ? el.textContent : "";
  };
  return { before: text("script#before"), after: text("script#after") };
}
"""

def inject_script(page, script: str):
    wrappers = page.evaluate(js_read_wrapper_scripts())
    page.evaluate(f"{wrappers['before']};{script};{wrappers['after']}")

def write_output(buffer: bytes, output: Optional[str]):
    if output:
        Path(output).write_bytes(buffer)
        return
    sys.stdout.buffer.write(buffer)
    sys.stdout.buffer.flush()


# ---------- render pipeline ----------

def render_pdf(playwright, opts: PrintOptions) -> bytes:
    url = resolve_target(opts.url)
    cookies = build_cookies(opts.cookies, url)

    browser = playwright.chromium.launch(**build_launch_options(opts.sandbox))
    context = browser.new_context(java_script_enabled=opts.javascript)
    page = context.new_page()

    if cookies:
        log("Setting cookies")
        context.add_cookies(cookies)

    navigate(page, url, opts)
    log(f"Writing {opts.output or 'STDOUT'}")

    paper_format: Optional[str] = opts.format
    width = height = None
    if opts.format == AUTO_FORMAT:
        height = page.evaluate(PAGE_HEIGHT_JS)
        width = AUTO_FORMAT_WIDTH
        paper_format = None

    if opts.inject_js:
        inject_script(page, opts.inject_js)

    if opts.emulate_media:
        page.emulate_media(media=opts.emulate_media)

    buffer = page.pdf(
        format=paper_format,
        width=width,
        height=height,
        scale=opts.scale,
        landscape=opts.landscape,
        print_background=opts.background,
        margin={
            "top": opts.margin_top,
            "right": opts.margin_right,
            "bottom": opts.margin_bottom,
            "left": opts.margin_left,
        },
        display_header_footer=opts.display_header_footer,
        header_template=opts.header_template,
        footer_template=opts.footer_template,
    )
    write_output(buffer, opts.output)

    log("Done")
    browser.close()
    return buffer

def render_screenshot(playwright, opts: ScreenshotOptions) -> bytes:
    url = resolve_target(opts.url)
    cookies = build_cookies(opts.cookies, url)

    browser = playwright.chromium.launch(**build_launch_options(opts.sandbox))
    context = browser.new_context()
    page = context.new_page()

    if opts.viewport:
        log(f"Setting viewport to {opts.viewport.width}x{opts.viewport.height}")
        page.set_viewport_size({"width": opts.viewport.width, "height": opts.viewport.height})

    if cookies:
        log("Setting cookies")
        context.add_cookies(cookies)

    navigate(page, url, opts)
    log(f"Writing {opts.output or 'STDOUT'}")

    buffer = page.screenshot(
        type="png",
        full_page=opts.full_page,
        omit_background=opts.omit_background,
    )
    write_output(buffer, opts.output)

    log("Done")
    browser.close()
    return buffer


# ---------- CLI ----------

class ArgumentParser(argparse.ArgumentParser):
    """argparse with usage errors reported as exit status 1, like render failures."""

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")

def viewport_arg(value: str) -> Viewport:
    try:
        return parse_viewport(value)
    except InvalidArgument as e:
        raise argparse.ArgumentTypeError(str(e))

def add_common_arguments(p: argparse.ArgumentParser):
    p.add_argument("url", help="URL or path of the HTML file to render")
    p.add_argument("output", nargs="?", default=None, help="Output file (default: STDOUT)")
    p.add_argument("--sandbox", action=argparse.BooleanOptionalAction, default=True,
                   help="Run Chromium with its OS sandbox (default: on).")
    p.add_argument("--timeout", type=int, default=DEFAULT_TIMEOUT_MS,
                   help=f"Navigation timeout in ms (default {DEFAULT_TIMEOUT_MS}).")
    p.add_argument("--wait-until", default="load",
                   choices=WAIT_UNTIL_CHOICES + tuple(WAIT_UNTIL_ALIASES),
                   help="When to consider navigation finished (default: load).")
    p.add_argument("--cookie", action="append", default=[],
                   help='Set a cookie in the form "key:value". May be repeated for multiple cookies.')

def build_parser() -> argparse.ArgumentParser:
    ap = ArgumentParser(prog="pageprint", description="Render an HTML file or URL to PDF or PNG.")
    sub = ap.add_subparsers(dest="command", metavar="command", parser_class=ArgumentParser)
    sub.required = True

    pp = sub.add_parser("print", help="Print an HTML file or URL to PDF")
    add_common_arguments(pp)
    pp.add_argument("--emulate-media", default="", choices=("screen", "print"),
                    help='Set "screen" to get screen design of website')
    pp.add_argument("--inject-js", default="", help="JavaScript to evaluate before printing.")
    pp.add_argument("--scale", type=float, default=1)
    pp.add_argument("--background", action=argparse.BooleanOptionalAction, default=True)
    pp.add_argument("--margin-top", default="6.25mm")
    pp.add_argument("--margin-right", default="6.25mm")
    pp.add_argument("--margin-bottom", default="14.11mm")
    pp.add_argument("--margin-left", default="6.25mm")
    pp.add_argument("--format", default="Letter",
                    help='Paper format. Set "auto" to create custom format based on website height.')
    pp.add_argument("--landscape", action=argparse.BooleanOptionalAction, default=False)
    pp.add_argument("--display-header-footer", action=argparse.BooleanOptionalAction, default=False)
    pp.add_argument("--header-template", default="")
    pp.add_argument("--footer-template", default="")
    pp.add_argument("--javascript", action=argparse.BooleanOptionalAction, default=False,
                    help="Let page scripts run while printing (default: off).")
    pp.set_defaults(handler=run_print)

    sp = sub.add_parser("screenshot", help="Take screenshot of an HTML file or URL to PNG")
    add_common_arguments(sp)
    sp.add_argument("--full-page", action=argparse.BooleanOptionalAction, default=True)
    sp.add_argument("--omit-background", action=argparse.BooleanOptionalAction, default=False)
    sp.add_argument("--viewport", type=viewport_arg, default=None,
                    help="Set viewport to a given size, e.g. 800x600")
    sp.set_defaults(handler=run_screenshot)
    return ap

def run_print(args: argparse.Namespace):
    opts = PrintOptions.from_args(args)
    try:
        with sync_playwright() as p:
            render_pdf(p, opts)
    except Exception as e:
        print(f"Failed to generate pdf: {e}", file=sys.stderr)
        raise SystemExit(1)

def run_screenshot(args: argparse.Namespace):
    opts = ScreenshotOptions.from_args(args)
    try:
        with sync_playwright() as p:
            render_screenshot(p, opts)
    except Exception as e:
        print(f"Failed to take screenshot: {e}", file=sys.stderr)
        raise SystemExit(1)

def main(argv: Optional[List[str]] = None):
    args = build_parser().parse_args(argv)
    args.handler(args)

if __name__ == "__main__":
    main()
