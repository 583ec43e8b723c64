import os
import socket
import tempfile
import threading
import unittest
from pathlib import Path

from vclient.codec import ByteOrder
from vclient.config import Credential
from vclient.dataio import read_results
from vclient.errors import AuthRejected, ConnectError
from vclient.protocol import ProtocolConfig, StringFraming
from vclient.session import run_client, run_session
from vclient.stub_server import REDUCERS, StubServer, wrap_i64
from vclient.transport import TcpTarget

CREDENTIAL = Credential("user", "P@ssW0rd")
LOCAL = TcpTarget("127.0.0.1", 0)


class RejectingServer:
    """Accepts one client, runs the handshake with a fixed ack, then records what follows."""

    def __init__(self, ack: bytes):
        self.ack = ack
        self.trailing = None
        self.listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.listener.bind(("127.0.0.1", 0))
        self.listener.listen(1)
        self.target = TcpTarget(*self.listener.getsockname()[:2])
        self.thread = threading.Thread(target=self._run, daemon=True)
        self.thread.start()

    def _read(self, conn, n):
        data = b""
        while len(data) < n:
            chunk = conn.recv(n - len(data))
            if not chunk:
                break
            data += chunk
        return data

    def _run(self):
        conn, _ = self.listener.accept()
        with conn:
            conn.settimeout(5)
            self._read(conn, 4 + len(b"user"))
            conn.sendall(os.urandom(16))
            self._read(conn, 4 + 32)
            conn.sendall(self.ack)
            data = b""
            while chunk := conn.recv(4096):
                data += chunk
            self.trailing = data

    def finish(self):
        self.thread.join(5)
        self.listener.close()


class TestRunSession(unittest.TestCase):
    def test_sum_against_stub_server(self):
        with StubServer(LOCAL, CREDENTIAL) as server:
            results = run_session(server.address, CREDENTIAL, [[1, 2, 3], [4], []], timeout=5)
            self.assertTrue(server.wait_for_sessions(1))
        self.assertEqual(results, [6, 4, 0])
        self.assertEqual(server.sessions, [(True, [[1, 2, 3], [4], []])])

    def test_empty_batch(self):
        with StubServer(LOCAL, CREDENTIAL) as server:
            self.assertEqual(run_session(server.address, CREDENTIAL, [], timeout=5), [])
            self.assertTrue(server.wait_for_sessions(1))
        self.assertEqual(server.sessions, [(True, [])])

    def test_wrong_password_is_rejected(self):
        with StubServer(LOCAL, CREDENTIAL) as server:
            with self.assertRaises(AuthRejected):
                run_session(server.address, Credential("user", "guess"), [[1]], timeout=5)
            self.assertTrue(server.wait_for_sessions(1))
        self.assertEqual(server.sessions, [(False, [])])

    def test_wrong_username_is_rejected(self):
        with StubServer(LOCAL, CREDENTIAL) as server:
            with self.assertRaises(AuthRejected):
                run_session(server.address, Credential("root", CREDENTIAL.password), [[1]], timeout=5)

    def test_no_exchange_after_rejection(self):
        for ack in (b"NO", b"  "):
            with self.subTest(ack=ack):
                server = RejectingServer(ack)
                with self.assertRaises(AuthRejected):
                    run_session(server.target, CREDENTIAL, [[1, 2, 3]], timeout=5)
                server.finish()
                self.assertEqual(server.trailing, b"")

    def test_nothing_listening(self):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            s.bind(("127.0.0.1", 0))
            target = TcpTarget(*s.getsockname()[:2])
        with self.assertRaises(ConnectError):
            run_session(target, CREDENTIAL, [[1]], timeout=2)

    def test_legacy_wire_settings(self):
        config = ProtocolConfig(byte_order=ByteOrder.NATIVE, string_framing=StringFraming.RAW)
        with StubServer(LOCAL, CREDENTIAL, config) as server:
            results = run_session(server.address, CREDENTIAL, [[5, 5], [-1]], config, timeout=5)
        self.assertEqual(results, [10, -1])

    def test_other_reducers(self):
        batch = [[3, -2, 7], []]
        expected = {"sum": [8, 0], "product": [-42, 1], "max": [7, 0], "min": [-2, 0]}
        for name, want in expected.items():
            with self.subTest(reducer=name):
                with StubServer(LOCAL, CREDENTIAL, reducer=REDUCERS[name]) as server:
                    self.assertEqual(run_session(server.address, CREDENTIAL, batch, timeout=5), want)

    def test_overflow_wraps(self):
        self.assertEqual(wrap_i64(2**63), -(2**63))
        self.assertEqual(wrap_i64(-(2**63) - 1), 2**63 - 1)
        with StubServer(LOCAL, CREDENTIAL) as server:
            results = run_session(server.address, CREDENTIAL, [[2**63 - 1, 1]], timeout=5)
        self.assertEqual(results, [-(2**63)])


class TestRunClient(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.dir = Path(self.tmp.name)
        self.config_path = self.dir / "vclient.conf"
        self.config_path.write_text("user\nP@ssW0rd\n", encoding="utf-8")
        self.input_path = self.dir / "input.txt"
        self.input_path.write_text("1 2 3\n4\n\n", encoding="utf-8")
        self.output_path = self.dir / "out.bin"

    def tearDown(self):
        self.tmp.cleanup()

    def test_writes_result_file(self):
        with StubServer(LOCAL, CREDENTIAL) as server:
            results = run_client(server.address, self.config_path, self.input_path, self.output_path, timeout=5)
        self.assertEqual(results, [6, 4, 0])
        self.assertEqual(read_results(self.output_path), [6, 4, 0])

    def test_rejection_writes_nothing(self):
        with StubServer(LOCAL, Credential("user", "other")) as server:
            with self.assertRaises(AuthRejected):
                run_client(server.address, self.config_path, self.input_path, self.output_path, timeout=5)
        self.assertFalse(self.output_path.exists())


if __name__ == "__main__":
    unittest.main()
