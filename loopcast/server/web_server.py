import socketserver
import threading
from typing import Dict, Tuple

from loopcast.server.api_handler import StreamListHandler


class StreamListServer(socketserver.ThreadingTCPServer):
    daemon_threads = True
    allow_reuse_address = True

    def __init__(self, address, stream_listing: Dict[str, str]):
        super().__init__(address, StreamListHandler)
        self.stream_listing = dict(stream_listing)


def start_server(stream_listing: Dict[str, str], port: int) -> Tuple[StreamListServer, int]:
    """
    Starts the multi-threaded HTTP listing endpoint on a daemon thread.
    A busy port raises OSError.
    """
    server = StreamListServer(("", port), stream_listing)
    port_actual = server.server_address[1]

    server_thread = threading.Thread(target=server.serve_forever, daemon=True)
    server_thread.start()

    print(f"Server started on port {port_actual}")
    return server, port_actual
