"""Reporting the callback outcome to the window that started the flow."""

from __future__ import annotations

import asyncio
import html
import json
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Tuple, Union


SUCCESS_MESSAGE_TYPE = "SOCIAL_AUTH_SUCCESS"
ERROR_MESSAGE_TYPE = "SOCIAL_AUTH_ERROR"

Delay = Callable[[float], Awaitable[Any]]


@dataclass(frozen=True)
class AuthSuccess:
    platform: str

    def message(self) -> Dict[str, str]:
        return {"type": SUCCESS_MESSAGE_TYPE, "platform": self.platform}


@dataclass(frozen=True)
class AuthFailure:
    message_text: str

    def message(self) -> Dict[str, str]:
        return {"type": ERROR_MESSAGE_TYPE, "error": self.message_text}


Outcome = Union[AuthSuccess, AuthFailure]


class WindowPort(Protocol):
    def has_opener(self) -> bool: ...

    def post_to_opener(self, message: Dict[str, str], target_origin: str) -> None: ...

    def close(self) -> None: ...

    def navigate_home(self) -> None: ...


class ResultPropagator:
    """Posts the outcome to the opener and closes the popup, or navigates home."""

    def __init__(self, window: WindowPort, origin: str, *, delay: Delay = asyncio.sleep) -> None:
        self.window = window
        self.origin = origin
        self._delay = delay

    async def propagate(self, outcome: Outcome, delay_ms: int = 0) -> None:
        if delay_ms > 0:
            await self._delay(delay_ms / 1000)
        if self.window.has_opener():
            self.window.post_to_opener(outcome.message(), self.origin)
            self.window.close()
        else:
            self.window.navigate_home()


@dataclass
class CallbackPageWindow:
    """
    Window port for the server-rendered callback page.

    The server cannot see `window.opener`, so the page script makes that call:
    the message is always recorded, and the script posts it and closes the
    popup when an opener exists or returns to `home_path` otherwise. Commands
    are replayed after `delay_ms`, so the server never sleeps on a request.
    """

    home_path: str = "/"
    delay_ms: int = 0
    commands: List[Tuple[str, Optional[Dict[str, Any]]]] = field(default_factory=list)

    def has_opener(self) -> bool:
        return True

    def post_to_opener(self, message: Dict[str, str], target_origin: str) -> None:
        self.commands.append(("post_message", {"message": message, "origin": target_origin}))

    def close(self) -> None:
        self.commands.append(("close", None))

    def navigate_home(self) -> None:
        self.commands.append(("navigate", {"path": self.home_path}))

    async def defer(self, seconds: float) -> None:
        self.delay_ms += int(round(seconds * 1000))


def _script_for(window: CallbackPageWindow) -> str:
    opener_lines = []
    navigate = False
    for command, args in window.commands:
        if command == "post_message" and args:
            opener_lines.append(
                "window.opener.postMessage(%s, %s);" % (json.dumps(args["message"]), json.dumps(args["origin"]))
            )
        elif command == "close":
            opener_lines.append("window.close();")
        elif command == "navigate":
            navigate = True

    home = "window.location.replace(%s);" % json.dumps(window.home_path)
    if opener_lines:
        body = "if (window.opener) {\n      %s\n    } else {\n      %s\n    }" % (
            "\n      ".join(opener_lines),
            home,
        )
    elif navigate:
        body = home
    else:
        body = ""
    # </ inside inline JSON would end the script element early.
    body = body.replace("</", "<\\/")
    return "setTimeout(function () {\n    %s\n  }, %d);" % (body, window.delay_ms)


def render_callback_page(message: str, error: Optional[str], window: CallbackPageWindow) -> str:
    error_html = f'<p class="error">{html.escape(error)}</p>' if error else ""
    return f"""<!DOCTYPE html>
<html lang="en">
<head><meta charset="utf-8"><title>{html.escape(message)}</title></head>
<body>
  <h2>{html.escape(message)}</h2>
  {error_html}
  <script>
  {_script_for(window)}
  </script>
</body>
</html>
"""
