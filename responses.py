"""
responses.py — Turn a gate decision into an HTTP response.

Granted views and both error pages carry the same no-store, no-index and
anti-framing headers. The two error pages are the only distinction exposed
to the public: "invalid" (which also covers unknown documents) and
"expired". The status for expired links is configurable (410 or 404).
"""

import os
import html
from typing import Callable, Dict, Optional

from dotenv import load_dotenv
from fastapi.responses import HTMLResponse

from gate import GateDecision, GateOutcome, ReadGrant

load_dotenv()


def _expired_status_from_env() -> int:
    try:
        status = int(os.getenv("PDS_EXPIRED_STATUS", "410"))
    except ValueError:
        return 410
    return status if status in (404, 410) else 410


EXPIRED_STATUS = _expired_status_from_env()
INVALID_STATUS = 404
STRICT_CSP = os.getenv("PDS_STRICT_CSP", "false").lower() == "true"

INVALID_MESSAGE = "Invalid or expired link."
EXPIRED_MESSAGE = "This link has expired."
HINT_MESSAGE = "Ask the author for a new link."

NO_STORE_HEADERS: Dict[str, str] = {
    "Cache-Control": "no-store, no-cache, must-revalidate, max-age=0",
    "Pragma": "no-cache",
    "Expires": "0",
    "Surrogate-Control": "no-store",
    "X-Accel-Expires": "0",     # nginx
}

ROBOTS_HEADERS: Dict[str, str] = {"X-Robots-Tag": "noindex, nofollow"}

BASELINE_CSP = "frame-ancestors 'none'"
STRICT_CSP_POLICY = "default-src 'self'; frame-ancestors 'none'; script-src 'none'; base-uri 'self'"


def security_headers(strict_csp: bool = STRICT_CSP) -> Dict[str, str]:
    return {
        "Referrer-Policy": "no-referrer",
        "X-Frame-Options": "DENY",
        "Content-Security-Policy": STRICT_CSP_POLICY if strict_csp else BASELINE_CSP,
        "X-Content-Type-Options": "nosniff",
    }


def share_headers(strict_csp: bool = STRICT_CSP) -> Dict[str, str]:
    headers = dict(NO_STORE_HEADERS)
    headers.update(security_headers(strict_csp))
    headers.update(ROBOTS_HEADERS)
    return headers


_ERROR_STYLE = (
    "body{font:16px/1.4 -apple-system,BlinkMacSystemFont,Segoe UI,Roboto,Helvetica,Arial,sans-serif;"
    "margin:4rem;color:#2d3748} .box{max-width:640px;margin:auto;padding:1.5rem;"
    "border:1px solid #e2e8f0;border-radius:8px;background:#fff} h1{margin:0 0 .5rem;font-size:1.25rem}"
)


def render_error_page(status: int, message: str, strict_csp: bool = STRICT_CSP) -> HTMLResponse:
    body = (
        '<!DOCTYPE html><meta charset="utf-8"><meta name="robots" content="noindex,nofollow">'
        f"<style>{_ERROR_STYLE}</style>"
        f'<div class="box"><h1>{html.escape(message)}</h1><p>{html.escape(HINT_MESSAGE)}</p></div>'
    )
    return HTMLResponse(content=body, status_code=status, headers=share_headers(strict_csp))


class ResponseShaper:

    def __init__(self, expired_status: int = EXPIRED_STATUS, strict_csp: bool = STRICT_CSP):
        self.expired_status = expired_status if expired_status in (404, 410) else 410
        self.strict_csp = strict_csp

    def shape(
        self,
        decision: GateDecision,
        render: Callable[[ReadGrant], Optional[str]],
    ) -> Optional[HTMLResponse]:
        """Return the response for a share request, or None to let routing continue.

        *render* receives the grant and returns the page body; it returns None
        when the document vanished between validation and rendering.
        """
        if decision.outcome is GateOutcome.NOT_APPLICABLE:
            return None
        if decision.outcome is GateOutcome.EXPIRED:
            return render_error_page(self.expired_status, EXPIRED_MESSAGE, self.strict_csp)
        if decision.outcome is GateOutcome.GRANTED and decision.grant is not None:
            body = render(decision.grant)
            if body is not None:
                return HTMLResponse(content=body, status_code=200, headers=share_headers(self.strict_csp))
        return render_error_page(INVALID_STATUS, INVALID_MESSAGE, self.strict_csp)
