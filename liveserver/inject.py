import re

HTML_TYPE = "text/html"
CHANNEL_PATH = "/ws"

INJECTED_CODE = """
<!-- Code injected by live-server -->
<script>
(function(){
  if (window.__LIVE_SERVER__ || !("WebSocket" in window)) return;
  window.__LIVE_SERVER__ = true;
  const protocol = location.protocol === "https:" ? "wss://" : "ws://";
  const ws = new WebSocket(protocol + location.host + "%s");
  ws.onmessage = (msg) => {
    if (msg.data === "reload") location.reload();
    else if (msg.data === "connected") console.log("Live reload enabled.");
  };
})();
</script>
""" % CHANNEL_PATH

_BODY_END = re.compile(r"</body>", re.IGNORECASE)
_HEAD_END = re.compile(r"</head>", re.IGNORECASE)


def inject(content: str, content_type: str = HTML_TYPE) -> str:
    """Splice the reload client in front of the first </body>, else </head>.

    Non-HTML content, and HTML with neither tag, is returned unchanged.
    """
    if content_type != HTML_TYPE:
        return content
    match = _BODY_END.search(content) or _HEAD_END.search(content)
    if match is None:
        return content
    return content[:match.start()] + INJECTED_CODE + content[match.start():]
