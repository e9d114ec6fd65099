import http.server
import json


class StreamListHandler(http.server.BaseHTTPRequestHandler):
    """
    Answers every GET with the active stream map as JSON:
    {"<stream name>": "<video file>"}.
    The map lives on the server object (server.stream_listing).
    """
    def do_GET(self):
        try:
            listing = getattr(self.server, "stream_listing", {}) or {}
            body = json.dumps(listing).encode("utf-8")
            self.send_response(200)
            self.send_header("Content-Type", "application/json")
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)
        except (ConnectionResetError, BrokenPipeError):
            pass

    def do_HEAD(self):
        self.send_response(200)
        self.send_header("Content-Type", "application/json")
        self.end_headers()

    def log_message(self, format, *args):
        # Keep the console for server output and stream status
        pass
