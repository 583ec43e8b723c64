from __future__ import annotations

import argparse
import logging
import sys

from vclient.codec import ByteOrder
from vclient.config import DEFAULT_CONFIG_PATH, Credential
from vclient.errors import ClientError, ErrorKind
from vclient.protocol import DEFAULT_PORT, ProtocolConfig, StringFraming
from vclient.session import run_client
from vclient.stub_server import REDUCERS, StubServer
from vclient.transport import TcpTarget

EXIT_CODES = {
    ErrorKind.CLIENT: 1,
    ErrorKind.CONNECT: 3,
    ErrorKind.TRANSPORT: 4,
    ErrorKind.SEND: 4,
    ErrorKind.RECEIVE: 4,
    ErrorKind.AUTH_REJECTED: 5,
    ErrorKind.CONFIG: 6,
    ErrorKind.DATA: 7,
}


def _add_protocol_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--byte-order",
        choices=[o.name.lower() for o in ByteOrder],
        default="network",
        help="Wire byte order for counts and values (default: network; 'native' talks to legacy servers)",
    )
    parser.add_argument(
        "--string-framing",
        choices=[f.value for f in StringFraming],
        default=StringFraming.LENGTH_PREFIXED.value,
        help="How the username and digest are framed (default: length-prefixed)",
    )
    parser.add_argument("--hash", default="md5", help="hashlib algorithm for the salted digest (default: md5)")
    parser.add_argument("--timeout", type=float, default=None, help="Socket I/O timeout in seconds (default: none)")


def _add_run(sub: argparse._SubParsersAction) -> None:
    run = sub.add_parser("run", help="Authenticate and send a batch of vectors to the server")
    run.add_argument("-a", "--address", required=True, help="Server address")
    run.add_argument("-p", "--port", type=int, default=DEFAULT_PORT)
    run.add_argument("-i", "--input", required=True, help="Text file, one vector of integers per line")
    run.add_argument("-o", "--output", required=True, help="Binary result file to write")
    run.add_argument(
        "-c",
        "--config",
        default=DEFAULT_CONFIG_PATH,
        help=f"Credential file: username on line 1, password on line 2 (default: {DEFAULT_CONFIG_PATH})",
    )
    _add_protocol_options(run)


def _add_stub_server(sub: argparse._SubParsersAction) -> None:
    srv = sub.add_parser("stub-server", help="Run a local server that speaks the same protocol")
    srv.add_argument("--bind", default="127.0.0.1")
    srv.add_argument("--port", type=int, default=DEFAULT_PORT)
    srv.add_argument("--username", required=True)
    srv.add_argument("--password", required=True)
    srv.add_argument("--reducer", choices=sorted(REDUCERS), default="sum", help="Per-vector computation (default: sum)")
    _add_protocol_options(srv)


def _protocol_config(args: argparse.Namespace) -> ProtocolConfig:
    return ProtocolConfig(
        hash_name=args.hash,
        byte_order=ByteOrder.from_name(args.byte_order),
        string_framing=StringFraming(args.string_framing),
    )


def _run(args: argparse.Namespace, config: ProtocolConfig) -> int:
    target = TcpTarget(args.address, args.port)
    try:
        results = run_client(target, args.config, args.input, args.output, config, timeout=args.timeout)
    except ClientError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_CODES[exc.kind]
    print(f"[client] {len(results)} results from {target} written to {args.output}")
    return 0


def _stub_server(args: argparse.Namespace, config: ProtocolConfig) -> int:
    credential = Credential(args.username, args.password)
    try:
        server = StubServer(
            TcpTarget(args.bind, args.port), credential, config, REDUCERS[args.reducer], timeout=args.timeout
        )
    except OSError as exc:
        print(f"Error: cannot listen on {args.bind}:{args.port}: {exc}", file=sys.stderr)
        return 1
    print(f"[stub] listening on {server.address} (reducer={args.reducer})")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        server.stop()
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="vclient",
        description=(
            "Authenticate to a vector server with a salted password hash, "
            "send a batch of integer vectors and store one result per vector."
        ),
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
    )
    sub = parser.add_subparsers(dest="cmd", required=True)
    _add_run(sub)
    _add_stub_server(sub)

    args = parser.parse_args(argv)
    logging.basicConfig(level=args.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    try:
        config = _protocol_config(args)
    except ValueError as exc:
        parser.error(str(exc))

    if args.cmd == "run":
        return _run(args, config)

    if args.cmd == "stub-server":
        return _stub_server(args, config)

    print(f"Unknown command: {args.cmd}", file=sys.stderr)
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
