import os
import socket
import subprocess
import sys
import textwrap
import time
from pathlib import Path

import httpx
import pytest

SRC_DIR = Path(__file__).resolve().parents[1] / "src"

# Serves the real entry point, plus a route that breaks the pooled connection
# the way a dropped server-side session would.
SERVER_SCRIPT = textwrap.dedent(
    """
    from todo_service import server
    from todo_service.main import create_app

    def create_app_with_breaker(settings, **kwargs):
        app = create_app(settings, **kwargs)

        @app.post("/break-idle-connection")
        def break_idle_connection():
            with app.state.store.engine.connect() as conn:
                raw = conn.connection.dbapi_connection
            raw.close()
            return {"status": "broken"}

        return app

    server.create_app = create_app_with_breaker
    server.main()
    """
)


def _free_port():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


def _wait_until_healthy(base_url, proc, timeout=20.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if proc.poll() is not None:
            pytest.fail(f"server exited early with status {proc.returncode}")
        try:
            if httpx.get(f"{base_url}/health", timeout=1.0).status_code == 200:
                return
        except httpx.TransportError:
            pass
        time.sleep(0.1)
    pytest.fail("server did not become healthy")


@pytest.fixture
def server_env(clean_env, db_url):
    env = dict(os.environ)
    env.update(
        {
            "HOST": "127.0.0.1",
            "PORT": str(_free_port()),
            "DATABASE_URL": db_url,
            "DB_CREATE_SCHEMA": "true",
            # Ping every reused connection
            "DB_PING_AFTER": "0",
            "PYTHONPATH": os.pathsep.join(filter(None, [str(SRC_DIR), env.get("PYTHONPATH")])),
        }
    )
    return env


class TestServerExit:
    def test_fatal_pool_error_exits_with_status_1(self, server_env, tmp_path):
        script = tmp_path / "serve.py"
        script.write_text(SERVER_SCRIPT)
        base_url = f"http://127.0.0.1:{server_env['PORT']}"

        proc = subprocess.Popen([sys.executable, str(script)], env=server_env)
        try:
            _wait_until_healthy(base_url, proc)
            assert httpx.get(f"{base_url}/todos", timeout=5.0).status_code == 200
            assert httpx.post(f"{base_url}/break-idle-connection", timeout=5.0).status_code == 200

            res = httpx.get(f"{base_url}/todos", timeout=5.0)
            assert res.status_code == 500
            assert res.json() == {"error": "Internal server error"}

            assert proc.wait(timeout=20) == 1
        finally:
            if proc.poll() is None:
                proc.kill()
                proc.wait()
