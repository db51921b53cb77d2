#!/usr/bin/env python3
"""IPAM Panel Development Server"""
import os
import sys
import argparse
import socket
from pathlib import Path

import yaml


DEFAULT_CONFIG = {"port": 8000, "host": "127.0.0.1"}


def load_config(config_file: Path) -> dict:
    """Load config.yaml, creating it with defaults on first run."""
    if not config_file.exists():
        try:
            with open(config_file, "w") as f:
                yaml.dump(DEFAULT_CONFIG, f)
            print(f"Created default configuration: {config_file}")
        except OSError as e:
            print(f"Warning: Could not create config file: {e}")
        return dict(DEFAULT_CONFIG)

    try:
        with open(config_file, "r") as f:
            config = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        print(f"Warning: Could not read config file: {e}")
        return dict(DEFAULT_CONFIG)

    # Merge with defaults to ensure all keys exist
    return {**DEFAULT_CONFIG, **config}


def main():
    root_dir = Path(__file__).parent.resolve()
    config = load_config(root_dir / "config.yaml")

    parser = argparse.ArgumentParser(description="IPAM Panel Development Server")
    parser.add_argument("--host", default=config["host"], help=f"Host to bind (default: {config['host']})")
    parser.add_argument("--port", "-p", type=int, default=config["port"], help=f"Port to bind (default: {config['port']})")
    parser.add_argument("--reload", "-r", action="store_true", help="Enable auto-reload")
    parser.add_argument("--debug", "-d", action="store_true", help="Enable debug mode")
    args = parser.parse_args()

    if args.debug:
        os.environ["IPAM_DEBUG"] = "true"

    backend_dir = root_dir / "backend"
    os.chdir(backend_dir)
    sys.path.insert(0, str(backend_dir))

    print("=" * 50)
    print("IPAM Panel Development Server")
    print("=" * 50)
    print(f"  Host: {args.host}")
    print(f"  Port: {args.port}")
    print(f"  Reload: {args.reload}")
    print(f"  Debug: {args.debug}")
    print("=" * 50)
    print(f"\n  → http://{args.host}:{args.port}")
    print(f"  → http://{args.host}:{args.port}/docs (Swagger UI)")
    print("\n  Press Ctrl+C to stop\n")

    # Check if port is already in use
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        sock.bind((args.host, args.port))
    except OSError:
        print(f"\n  ✗ ERROR: port {args.port} is already in use!")
        print(f"    Use another port: python run.py -p {args.port + 1}\n")
        sys.exit(1)
    finally:
        sock.close()

    import uvicorn
    try:
        uvicorn.run(
            "app.main:app",
            host=args.host,
            port=args.port,
            reload=args.reload,
            log_level="info",
            access_log=True,
            use_colors=False,
        )
    except KeyboardInterrupt:
        pass

    print("\nStopped by user.")


if __name__ == "__main__":
    main()
