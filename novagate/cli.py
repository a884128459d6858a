#!/usr/bin/env python3
"""
novagate CLI.

Every command has a short name and standard aliases:

    COMMAND     ALIASES         WHAT IT DOES
    -------     -------         ----------------------------------
    serve       start, up       Start the gateway server
    ping        status, health  Ping a running instance
    usage       quota           Show a client's quota state from the store
    keys        pool            Show the credential pool (labels only)
"""

import argparse
import sys

__version__ = "1.0.0"


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def cmd_serve(args):
    """Start the gateway server."""
    import uvicorn
    from novagate.config import get_config, trusted_proxies

    cfg = get_config()
    proxies = trusted_proxies(cfg)
    host = args.host or cfg["server"]["host"]
    port = args.port or cfg["server"]["port"]

    print(f"  novagate v{__version__} on {host}:{port}")
    print(f"  Upstream: {cfg['upstream']['url']}")
    print(f"  Model: {cfg['upstream'].get('model') or '<unset>'}")
    print(f"  Trusted proxies: {', '.join(proxies) or 'none'}")
    print()

    uvicorn.run(
        "novagate.main:app",
        host=host,
        port=port,
        reload=args.reload,
        log_level="info",
        proxy_headers=bool(proxies),
        forwarded_allow_ips=",".join(proxies) or None,
    )


def cmd_ping(args):
    """Ping a running novagate instance."""
    import httpx

    url = args.url or "http://localhost:8000"
    try:
        resp = httpx.get(f"{url}/health", timeout=5)
        if resp.status_code != 200:
            print(f"  ✗  No answer — got HTTP {resp.status_code}")
            return 1
        data = resp.json()
        state = "UP" if data.get("ok") else "DEGRADED"
        print(f"  ✓  {url} is {state}")
        print(f"     Credentials: {data.get('credentials', 0)}")
        print(f"     Store: {'ok' if data.get('store') else 'unreachable'}")
        print(f"     Model: {data.get('model') or '<unset>'}")
        return 0
    except httpx.ConnectError:
        print(f"  ✗  Nothing listening at {url}")
    except httpx.HTTPError as e:
        print(f"  ✗  Error: {e}")
    return 1


def cmd_usage(args):
    """Show quota state for one client, read straight from the store."""
    from novagate.config import get_config
    from novagate.storage.backends import store_from_config
    from novagate.usage import UsageTracker

    cfg = get_config()
    tracker = UsageTracker.from_config(store_from_config(cfg), cfg)
    data = tracker.usage(args.client_id)

    print(f"  Client:    {args.client_id}")
    print(f"  Used:      {data['used']} / {data['limit']}")
    print(f"  Remaining: {data['remaining']}")
    if data["resets_in"] is not None:
        hours = data["resets_in"] / 3600
        print(f"  Resets in: {hours:.1f}h")
    return 0


def cmd_keys(args):
    """Show how many upstream keys are configured, by label."""
    from novagate.config import get_config
    from novagate.credentials import CredentialPool

    pool = CredentialPool(get_config().get("upstream", {}).get("api_keys") or [])
    if not pool.size():
        print("  ✗  No API keys configured (set AI_API_KEY_1..AI_API_KEY_6)")
        return 1
    print(f"  {pool.size()} key(s): {', '.join(pool.labels())}")
    return 0


# ---------------------------------------------------------------------------
# Parser with aliases
# ---------------------------------------------------------------------------

def _add_command(subparsers, names, help_text, func, setup_fn=None):
    """Register a command under multiple names."""
    p = subparsers.add_parser(names[0], help=help_text, aliases=names[1:])
    p.set_defaults(func=func)
    if setup_fn:
        setup_fn(p)
    return p


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="novagate",
        description="novagate — chat gateway with credential failover and quota.",
        epilog="Run 'novagate <command> --help' for command-specific options.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--version", "-V", action="version",
        version=f"novagate {__version__}",
    )

    sub = parser.add_subparsers(dest="command", metavar="<command>")

    def setup_serve(p):
        p.add_argument("--host", default=None, help="Override listen host")
        p.add_argument("--port", "-p", type=int, default=None, help="Override listen port")
        p.add_argument("--reload", action="store_true", help="Auto-reload on code changes (dev)")

    _add_command(sub, ["serve", "start", "up"],
                 "Start the gateway server", cmd_serve, setup_serve)

    def setup_ping(p):
        p.add_argument("--url", "-u", default=None, help="novagate URL (default: http://localhost:8000)")

    _add_command(sub, ["ping", "status", "health"],
                 "Ping a running novagate instance", cmd_ping, setup_ping)

    def setup_usage(p):
        p.add_argument("client_id", help="Client identifier (usually an IP address)")

    _add_command(sub, ["usage", "quota"],
                 "Show a client's quota state", cmd_usage, setup_usage)

    _add_command(sub, ["keys", "pool"],
                 "Show the credential pool (labels only)", cmd_keys)

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 0

    return args.func(args) or 0


if __name__ == "__main__":
    sys.exit(main())
