"""Minimal workload: answers every GET on the port named by $PORT."""

import os
from http.server import BaseHTTPRequestHandler, HTTPServer

PORT = int(os.environ.get("PORT", "3000"))

BODY = b"<h1>Hello from container-deployer!</h1><p>App is running successfully.</p>"


class HelloHandler(BaseHTTPRequestHandler):
    def do_GET(self) -> None:
        self.send_response(200)
        self.send_header("Content-Type", "text/html")
        self.send_header("Content-Length", str(len(BODY)))
        self.end_headers()
        self.wfile.write(BODY)


if __name__ == "__main__":
    print(f"Server running on port {PORT}", flush=True)
    HTTPServer(("0.0.0.0", PORT), HelloHandler).serve_forever()
