import json
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest
from fastapi.testclient import TestClient

import frame_api
from frame_api import FrameConfig

PROXY_VARS = ("HTTP_PROXY", "HTTPS_PROXY", "ALL_PROXY", "http_proxy", "https_proxy", "all_proxy")


class UpstreamHandler(BaseHTTPRequestHandler):
    """Plays Neynar on GET and Syndicate on POST, with keep-alive connections."""

    protocol_version = "HTTP/1.1"

    def do_GET(self):
        self.server.lookups.append(self.path)
        self._reply({"users": [{"verifications": ["0xAAA"]}]})

    def do_POST(self):
        length = int(self.headers.get("Content-Length", 0))
        self.server.mints.append(json.loads(self.rfile.read(length)))
        self._reply({"transactionId": f"tx-{len(self.server.mints)}"})

    def _reply(self, payload):
        body = json.dumps(payload).encode("utf-8")
        self.send_response(200)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format, *args):
        pass


@pytest.fixture
def upstream_server(monkeypatch):
    server = ThreadingHTTPServer(("127.0.0.1", 0), UpstreamHandler)
    server.lookups = []
    server.mints = []
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()

    base = f"http://127.0.0.1:{server.server_address[1]}"
    for var in PROXY_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("SYNDICATE_API_KEY", "syndicate-key")
    monkeypatch.setattr(FrameConfig, "NEYNAR_API_BASE", f"{base}/v2")
    monkeypatch.setattr(FrameConfig, "SYNDICATE_API_BASE", base)
    monkeypatch.setattr(frame_api, "neynar_client", None)
    monkeypatch.setattr(frame_api, "syndicate_client", None)

    yield server

    server.shutdown()
    server.server_close()


def test_repeated_clicks_without_lifespan(upstream_server):
    # Without the context manager no startup runs and every request gets its own loop.
    client = TestClient(frame_api.app)

    responses = [
        client.post(FrameConfig.FRAME_PATH, json={"untrustedData": {"fid": fid}})
        for fid in (1, 2, 3)
    ]

    assert [r.status_code for r in responses] == [200, 200, 200], [r.text for r in responses]
    assert all(FrameConfig.HAPPY_IMAGE_URL in r.text for r in responses)
    assert [path.split("fids=")[1] for path in upstream_server.lookups] == ["1", "2", "3"]
    assert [mint["args"]["to"] for mint in upstream_server.mints] == ["0xAAA"] * 3
