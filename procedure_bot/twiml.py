from __future__ import annotations

from xml.sax.saxutils import escape

from .models import BotReply

XML_HEADER = '<?xml version="1.0" encoding="UTF-8"?>'


def render_twiml(reply: BotReply) -> str:
    """Purpose: Render a BotReply as a TwiML messaging response.
    Inputs/Outputs: Input is a BotReply; output is an XML document with one <Message>
        per segment (<Body> for text, <Media> for a photo URL).
    Side Effects / State: None.
    Dependencies: xml.sax.saxutils.escape.
    Failure Modes: None; an empty reply renders an empty <Response/>.
    If Removed: Twilio receives no reply for inbound WhatsApp messages.
    Testing Notes: URLs with "&" must be escaped.
    """
    parts = [XML_HEADER, "<Response>"]
    for segment in reply.segments:
        inner = []
        if segment.text:
            inner.append(f"<Body>{escape(segment.text)}</Body>")
        if segment.media_url:
            inner.append(f"<Media>{escape(segment.media_url)}</Media>")
        if inner:
            parts.append("<Message>" + "".join(inner) + "</Message>")
    parts.append("</Response>")
    return "".join(parts)
