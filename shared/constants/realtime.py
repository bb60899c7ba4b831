class RealtimePaths:
    """Well-known HTTP/WebSocket paths shared by the hub and its clients"""

    API_PREFIX = "/v1"

    WS_PATH = "/v1/realtime/ws"
    METRICS_PATH = "/v1/realtime/metrics"
    METRICS_HISTORY_PATH = "/v1/realtime/metrics/history"

    @classmethod
    def ws_url(cls, base_url: str) -> str:
        """Translate an http(s) base URL into the channel URL."""
        base = base_url.rstrip("/")
        if base.startswith("https://"):
            base = "wss://" + base[len("https://") :]
        elif base.startswith("http://"):
            base = "ws://" + base[len("http://") :]
        return base + cls.WS_PATH

    @classmethod
    def metrics_url(cls, base_url: str) -> str:
        return base_url.rstrip("/") + cls.METRICS_PATH
