from .web_server import start_server, StreamListServer
