#!/usr/bin/env python3
"""
Multi-user wiki server.
Serves per-wiki access-controlled pages and media from a two-tier configuration.
"""

import argparse
import logging
import sys

import yaml

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s", stream=sys.stderr
)


def print_effective_config(defaults_path: str, local_path: str) -> None:
    """Print the merged configuration (defaults + local overrides) as YAML."""
    from wikiserver.settings.store import ConfigStore, dump_tree

    store = ConfigStore.open(defaults_path, local_path)
    print(dump_tree(store.effective), end="")


def create_wiki(defaults_path: str, local_path: str, name: str, owner: str, level: str, public: bool) -> int:
    from wikiserver.api.server import wikis_base_dir
    from wikiserver.auth.models import Identity
    from wikiserver.authz.policy import TenantAuthorizer, TenantExistsError
    from wikiserver.settings.store import ConfigStore, ConfigStoreError
    from wikiserver.storage.local_store import LocalWikiStore, valid_wiki_name

    if not valid_wiki_name(name):
        print(f"Invalid wiki name: {name}", file=sys.stderr)
        return 2

    store = ConfigStore.open(defaults_path, local_path)
    wikis = LocalWikiStore(base_dir=wikis_base_dir(store))
    if wikis.load_wiki(name):
        print(f"Wiki already exists: {name}", file=sys.stderr)
        return 1

    authorizer = TenantAuthorizer(store)
    try:
        policy = authorizer.create_tenant(name, Identity(name=owner, level=level), public)
    except TenantExistsError as e:
        print(f"Wiki already exists: {e.name}", file=sys.stderr)
        return 1
    except ConfigStoreError as e:
        print(f"Wiki settings were not saved: {e}", file=sys.stderr)
        return 1

    wiki_dir = wikis.create_wiki(name)
    print(yaml.safe_dump({"name": name, "path": str(wiki_dir), "owner": policy.owner, "public": policy.public}), end="")
    return 0


def main():
    """CLI entry point."""
    from wikiserver.settings.config import load_server_config

    cfg = load_server_config()
    parser = argparse.ArgumentParser(
        description="Serve access-controlled wikis",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run the HTTP server
  python main.py --serve --port 8080

  # Show the effective configuration
  python main.py --print-config

  # Create a private wiki owned by alice
  python main.py --create-wiki notes --owner alice --level Editor
        """,
    )

    parser.add_argument("--serve", action="store_true", help="Run the HTTP wiki server")
    parser.add_argument("--host", default="0.0.0.0", help="Server bind host (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=8080, help="Server listen port (default: 8080)")
    parser.add_argument(
        "--defaults",
        default=cfg.defaults_path,
        help=f"Defaults configuration file (default: {cfg.defaults_path})",
    )
    parser.add_argument(
        "--local",
        default=cfg.local_path,
        help=f"Local override configuration file (default: {cfg.local_path})",
    )
    parser.add_argument("--print-config", action="store_true", help="Print the effective configuration and exit")
    parser.add_argument("--create-wiki", metavar="NAME", help="Create a wiki and record its owner")
    parser.add_argument("--owner", help="Owner identity name (for --create-wiki)")
    parser.add_argument("--level", default="", help="Owner identity level (for --create-wiki)")
    parser.add_argument("--public", action="store_true", help="Make the new wiki publicly viewable")

    args = parser.parse_args()

    try:
        if args.print_config:
            print_effective_config(args.defaults, args.local)
            return

        if args.create_wiki:
            if not args.owner:
                parser.error("--create-wiki requires --owner")
            sys.exit(create_wiki(args.defaults, args.local, args.create_wiki, args.owner, args.level, args.public))

        if args.serve:
            if args.defaults != cfg.defaults_path or args.local != cfg.local_path:
                from wikiserver.api.server import build_runtime, set_runtime
                from wikiserver.settings.store import ConfigStore

                set_runtime(build_runtime(ConfigStore.open(args.defaults, args.local)))

            from wikiserver.api.server import run as run_server

            run_server(host=args.host, port=args.port)
            return

        parser.print_help()
    except KeyboardInterrupt:
        print("\n\nInterrupted by user")
        sys.exit(0)


if __name__ == "__main__":
    main()
