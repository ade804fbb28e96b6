# offerwatch/server.py
"""
Process entry point.

    offerwatch            (console script)
    python -m offerwatch

Order of events:
    1. create_app()               routes, middleware, jobs registered
    2. bind_listener()            socket bound on HOST:PORT (SO_REUSEPORT)
    3. announce_listening()       "serving on port N", THEN background
                                  bootstrap on its own daemon thread
    4. serve_forever()            requests never wait on background work

SCHEDULER_ENABLED=false skips step 3's bootstrap, for extra worker
processes sharing the port.
"""

from __future__ import annotations

import logging
import socket
import threading

from werkzeug.serving import BaseWSGIServer, make_server

logger = logging.getLogger("offerwatch.server")


def _listening_socket(host: str, port: int, reuse_port: bool) -> socket.socket:
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    sock = socket.socket(family, socket.SOCK_STREAM)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    if reuse_port:
        if hasattr(socket, "SO_REUSEPORT"):
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEPORT, 1)
        else:
            logger.warning("SO_REUSEPORT not supported on this platform")
    try:
        sock.bind((host, port))
        sock.listen(128)
    except OSError:
        sock.close()
        raise
    return sock


def bind_listener(app, host: str, port: int, reuse_port: bool = True) -> BaseWSGIServer:
    """Bind and listen, then hand the socket to a threaded werkzeug server."""
    sock = _listening_socket(host, port, reuse_port)
    try:
        server = make_server(host, port, app, threaded=True, fd=sock.fileno())
    finally:
        # werkzeug works on its own dup of the descriptor
        sock.close()
    return server


def announce_listening(server: BaseWSGIServer, bootstrap, enabled: bool = True) -> threading.Thread | None:
    """
    Emit the bind-success notification, then start background work off the
    serving thread. Returns the bootstrap thread (None when disabled).
    """
    port = server.server_address[1]
    logger.info("serving on port %s", port)

    if not enabled:
        logger.info("Background scanning disabled for this process (SCHEDULER_ENABLED != true)")
        return None

    thread = threading.Thread(
        target=bootstrap.start, args=(server,), daemon=True, name="offerwatch-bootstrap",
    )
    thread.start()
    return thread


def main() -> None:
    from offerwatch import create_app

    app = create_app()
    cfg = app.config
    bootstrap = app.extensions["offerwatch"]["bootstrap"]

    server = bind_listener(app, cfg["HOST"], cfg["PORT"], reuse_port=cfg["REUSE_PORT"])
    announce_listening(server, bootstrap, enabled=cfg["SCHEDULER_ENABLED"])
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Shutting down")
    finally:
        bootstrap.stop()
        server.server_close()


if __name__ == "__main__":
    main()
