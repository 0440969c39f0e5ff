"""
Isolation Boundary
==================
How a worksheet is embedded and what may cross the frame boundary.

Ingress (host -> frame, once, at load time): the saved state and the view
mode, injected as two window globals ahead of the worksheet's own scripts.

Egress (frame -> host): one message shape only,

    {"type": "SAVE_WORKSHEET_DATA", "payload": <snapshot>}

Worksheets are authored content and are not trusted. The host validates
every message with parse_message() before anything else looks at it.
"""
import json
import logging
import re
from urllib.parse import urlparse

from markupsafe import escape

from ..config import MAX_MESSAGE_BYTES, SANDBOX_PERMISSIONS
from .lifecycle import is_frozen
from .snapshot import sanitize_snapshot
from .state_extractor import StateExtractor
from .worksheet_document import WorksheetDocument

logger = logging.getLogger(__name__)

SAVE_WORKSHEET_DATA = "SAVE_WORKSHEET_DATA"

VIEW_INTERACTIVE = "interactive"
VIEW_READ_ONLY = "read-only"
VIEW_SUBMITTED = "submitted"
VIEW_MODES = (VIEW_INTERACTIVE, VIEW_READ_ONLY, VIEW_SUBMITTED)

SAVED_STATE_GLOBAL = "CLASSHUB_SAVED_STATE"
VIEW_MODE_GLOBAL = "CLASSHUB_VIEW_MODE"

_ASSET_ATTR_RE = re.compile(r' (src|href)="([^"]+)"')
_ABSOLUTE_URL_RE = re.compile(r'^(?:[a-z][a-z0-9+.-]*:|//|#)', re.IGNORECASE)
_HEAD_CLOSE_RE = re.compile(r'</head\s*>', re.IGNORECASE)
_HEAD_OPEN_RE = re.compile(r'<head(\s[^>]*)?>', re.IGNORECASE)
_GLOBAL_RE = r'^\s*window\.{name} = (.*);$'


# =============================================================================
# EMBEDDING
# =============================================================================

def rewrite_asset_urls(html, file_map):
    """Point relative src/href references at the uploaded files in file_map."""
    if not file_map:
        return html

    def _replace(match):
        attr, value = match.group(1), match.group(2)
        if _ABSOLUTE_URL_RE.match(value):
            return match.group(0)
        file_name = value.split('/')[-1]
        if file_name in file_map:
            return f' {attr}="{file_map[file_name]}"'
        return match.group(0)

    return _ASSET_ATTR_RE.sub(_replace, html)


def script_json(value):
    """JSON for inline <script>; the payload can never close the element."""
    return (json.dumps(value)
            .replace('<', '\\u003c')
            .replace('>', '\\u003e')
            .replace('&', '\\u0026'))


def content_security_policy(file_map=None):
    hosts = sorted({
        f"{parts.scheme}://{parts.netloc}"
        for parts in (urlparse(url) for url in (file_map or {}).values())
        if parts.scheme in ('http', 'https') and parts.netloc
    })
    sources = ' '.join(["'self'"] + hosts)
    return (
        f"default-src {sources}; "
        f"script-src {sources} 'unsafe-inline'; "
        f"style-src {sources} 'unsafe-inline'; "
        f"img-src {sources} data:; "
        "connect-src 'none'; form-action 'none'; base-uri 'none'"
    )


def inject_globals(html, saved_state, mode, file_map=None):
    if mode not in VIEW_MODES:
        raise ValueError(f"Unknown view mode: {mode}")
    block = (
        f'<meta http-equiv="Content-Security-Policy" content="{escape(content_security_policy(file_map))}">\n'
        '<script>\n'
        f'window.{SAVED_STATE_GLOBAL} = {script_json(saved_state or {})};\n'
        f'window.{VIEW_MODE_GLOBAL} = {script_json(mode)};\n'
        '</script>\n'
    )
    # Must run before the worksheet's own scripts, so prefer the top of <head>.
    opening = _HEAD_OPEN_RE.search(html)
    if opening:
        return html[:opening.end()] + '\n' + block + html[opening.end():]
    closing = _HEAD_CLOSE_RE.search(html)
    if closing:
        return html[:closing.start()] + block + html[closing.start():]
    return block + html


def build_embed(html, saved_state=None, mode=VIEW_INTERACTIVE, file_map=None):
    """The srcdoc for a worksheet frame."""
    return inject_globals(rewrite_asset_urls(html or '', file_map), saved_state, mode, file_map)


def render_frame(srcdoc, title="Worksheet"):
    """The host-side <iframe> element for an embed."""
    return (
        f'<iframe title="{escape(title)}" id="worksheet-iframe" '
        f'sandbox="{SANDBOX_PERMISSIONS}" referrerpolicy="no-referrer" '
        f'srcdoc="{escape(srcdoc)}"></iframe>'
    )


def read_injected_globals(srcdoc):
    """(saved_state, mode) as injected by build_embed."""
    state_match = re.search(_GLOBAL_RE.format(name=SAVED_STATE_GLOBAL), srcdoc, re.MULTILINE)
    mode_match = re.search(_GLOBAL_RE.format(name=VIEW_MODE_GLOBAL), srcdoc, re.MULTILINE)
    saved_state = json.loads(state_match.group(1)) if state_match else {}
    mode = json.loads(mode_match.group(1)) if mode_match else VIEW_INTERACTIVE
    return saved_state, mode


def view_mode_for(status, reviewer=False):
    if reviewer:
        return VIEW_READ_ONLY
    return VIEW_SUBMITTED if is_frozen(status) else VIEW_INTERACTIVE


# =============================================================================
# MESSAGES
# =============================================================================

def parse_message(raw, max_bytes=None):
    """
    Validate a message coming out of the frame.

    Returns {"type": SAVE_WORKSHEET_DATA, "payload": snapshot} or None.
    None covers oversized or non-object messages, other message types and
    payloads that are not snapshots; each is logged and otherwise ignored.
    """
    limit = max_bytes or MAX_MESSAGE_BYTES

    if isinstance(raw, bytes):
        try:
            raw = raw.decode('utf-8')
        except UnicodeDecodeError:
            logger.warning("Rejected frame message: not UTF-8")
            return None

    if isinstance(raw, str):
        size = len(raw.encode('utf-8'))
        if size > limit:
            logger.warning("Rejected frame message: %d bytes exceeds %d", size, limit)
            return None
        try:
            raw = json.loads(raw)
        except ValueError:
            logger.warning("Rejected frame message: not JSON")
            return None
    else:
        try:
            size = len(json.dumps(raw).encode('utf-8'))
        except (TypeError, ValueError):
            logger.warning("Rejected frame message: not serializable")
            return None
        if size > limit:
            logger.warning("Rejected frame message: %d bytes exceeds %d", size, limit)
            return None

    if not isinstance(raw, dict):
        logger.warning("Rejected frame message: expected an object, got %s", type(raw).__name__)
        return None

    if raw.get('type') != SAVE_WORKSHEET_DATA:
        logger.debug("Ignoring frame message of type %r", raw.get('type'))
        return None

    payload = sanitize_snapshot(raw.get('payload'))
    if payload is None:
        logger.warning("Rejected %s message: payload is not an object", SAVE_WORKSHEET_DATA)
        return None
    return {"type": SAVE_WORKSHEET_DATA, "payload": payload}


# =============================================================================
# FRAME
# =============================================================================

class SandboxedFrame:
    """
    The embedded worksheet, as seen from inside the frame.

    It is built from the embed alone (html plus injected globals) and has no
    handle on the store or the caller's identity. The only way out is
    post_state(), which produces a message for the host to validate.
    """

    def __init__(self, html, saved_state=None, mode=VIEW_INTERACTIVE):
        if mode not in VIEW_MODES:
            raise ValueError(f"Unknown view mode: {mode}")
        self.document = WorksheetDocument(html)
        self.extractor = StateExtractor(self.document)
        self.mode = mode
        self.torn_down = False
        # Resume: replay what was saved before the user can touch anything.
        if saved_state:
            self.extractor.load(saved_state)
        if mode != VIEW_INTERACTIVE:
            self.extractor.set_interactive(False)

    @classmethod
    def from_srcdoc(cls, srcdoc):
        saved_state, mode = read_injected_globals(srcdoc)
        return cls(srcdoc, saved_state=saved_state, mode=mode)

    @property
    def interactive(self):
        return self.mode == VIEW_INTERACTIVE and not self.torn_down

    def task(self, task_id):
        return self.extractor.find_task(task_id)

    def field(self, element_id):
        return self.extractor.fields().get(element_id)

    # ---- engagement ----

    def view_section(self, section_id, seconds):
        """A section was on screen for `seconds`. Unknown sections are ignored."""
        if self.interactive and section_id in self.extractor.sections():
            self.extractor.engagement.record_visible(section_id, seconds)

    def click(self, section_id):
        if self.interactive and section_id in self.extractor.sections():
            self.extractor.engagement.record_click(section_id)

    def post_state(self):
        """The state message the frame would post on this tick, if any."""
        if not self.interactive:
            return None
        return {"type": SAVE_WORKSHEET_DATA, "payload": self.extractor.extract()}

    def render(self):
        return self.document.to_html()

    def teardown(self):
        self.torn_down = True
