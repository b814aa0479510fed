"""
Role based routing for the responder web client.

The chain below is evaluated per request, top to bottom, and the first
matching rule wins. It mirrors the page structure of the web client:
responders work from /dashboard, admins from /admin, citizens are only
allowed on the public pages (they use the mobile app).
"""

from dataclasses import dataclass
from typing import Optional

PUBLIC_ROUTES = ("/", "/login", "/register", "/forgot-password")
AUTH_ROUTES = ("/login", "/register", "/forgot-password")

ALLOW = "allow"
REDIRECT = "redirect"


@dataclass(frozen=True)
class RouteDecision:
    action: str
    location: Optional[str] = None
    sign_out: bool = False

    def as_dict(self) -> dict:
        return {"action": self.action, "location": self.location, "sign_out": self.sign_out}


def home_for_role(role: Optional[str]) -> str:
    return "/admin" if role == "admin" else "/dashboard"


def resolve_route(pathname: str, authenticated: bool, role: Optional[str] = None,
                  account_status: Optional[str] = None) -> RouteDecision:
    """Decide whether a page request goes through, is redirected, or ends the session."""
    is_public = pathname in PUBLIC_ROUTES

    if not authenticated:
        if is_public:
            return RouteDecision(ALLOW)
        return RouteDecision(REDIRECT, "/")

    # Signed in but the profile row is gone
    if role is None:
        return RouteDecision(REDIRECT, "/", sign_out=True)

    if role == "user" and not is_public:
        return RouteDecision(REDIRECT, "/?error=access_denied", sign_out=True)

    if role == "responder" and not pathname.startswith("/admin"):
        if account_status in ("pending", "rejected"):
            return RouteDecision(REDIRECT, "/", sign_out=True)

    if pathname in AUTH_ROUTES or pathname == "/":
        return RouteDecision(REDIRECT, home_for_role(role))

    if pathname.startswith("/admin") and role != "admin":
        return RouteDecision(REDIRECT, "/dashboard")

    if pathname.startswith("/dashboard") and role == "admin":
        return RouteDecision(REDIRECT, "/admin")

    return RouteDecision(ALLOW)
