import argparse
import sys

import requests


def check_node_health(remote_addr: str, timeout: float = 3.0) -> None:
    """
    Call GET {remote_addr}/_distrihttp/health and fail if the cdn server is not OK.
    """
    health_url = f"{remote_addr.rstrip('/')}/_distrihttp/health"
    try:
        resp = requests.get(health_url, timeout=timeout)
    except requests.RequestException as e:
        print(f"[ERROR] Could not reach cdn server at {health_url}: {e}", file=sys.stderr)
        sys.exit(1)

    if resp.status_code != 200:
        print(f"[ERROR] CDN server health check failed ({resp.status_code}): {resp.text}", file=sys.stderr)
        sys.exit(1)

    print(f"[OK] CDN server at {remote_addr} is healthy.")


def register_node(root_url: str, remote_addr: str, timeout: float = 10.0) -> None:
    """
    POST /cdn_register on the root server with the cdn server address as body.
    """
    url = f"{root_url.rstrip('/')}/cdn_register"
    try:
        resp = requests.post(
            url,
            data=remote_addr.encode("utf-8"),
            headers={"Content-Type": "text/plain; charset=utf-8"},
            timeout=timeout,
        )
    except requests.RequestException as e:
        print(f"[ERROR] Could not reach root server at {url}: {e}", file=sys.stderr)
        sys.exit(1)

    if resp.status_code != 200:
        print(f"[ERROR] Failed to register cdn server ({resp.status_code}): {resp.text}", file=sys.stderr)
        sys.exit(1)

    print(f"[OK] Registered {remote_addr} at root server {root_url}")
    print("Response:", resp.json())


def main(argv=None):
    parser = argparse.ArgumentParser(description="Register a cdn server with a root server.")
    parser.add_argument(
        "--root-url",
        default="http://localhost:8192",
        help="Base URL of the root server (default: http://localhost:8192)",
    )
    parser.add_argument(
        "--remote-addr",
        required=True,
        help="Address clients are redirected to, e.g. http://localhost:8193",
    )
    parser.add_argument(
        "--skip-health-check",
        action="store_true",
        help="Register without checking that the cdn server answers /_distrihttp/health.",
    )

    args = parser.parse_args(argv)

    # 1) Check that the cdn server is reachable and healthy
    if not args.skip_health_check:
        check_node_health(args.remote_addr)

    # 2) Add it to the root server's roster
    register_node(root_url=args.root_url, remote_addr=args.remote_addr)


if __name__ == "__main__":
    main()


#Script run command
# python register_node.py \
#   --root-url http://localhost:8192 \
#   --remote-addr http://localhost:8193
