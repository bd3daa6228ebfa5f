#!/usr/bin/env python3
"""
advideo CLI - run the upload service or submit an upload to a running one.
"""

import argparse
import logging
import os
import sys

import httpx
from rich.console import Console
from rich.markup import escape

from api.errors import truncate_error
from config import ERROR_DETAIL_MAX_LENGTH, ERROR_SUMMARY_MAX_LENGTH, HOST, LOG_LEVEL, LOG_LEVELS, PORT

console = Console()


def positive_int(value: str) -> int:
    """Argparse type converter that validates positive integers."""
    i = int(value)
    if i <= 0:
        raise argparse.ArgumentTypeError(f"must be a positive integer, got {i}")
    return i

# An upload blocks for the whole transfer plus the status poll budget
UPLOAD_REQUEST_TIMEOUT = int(os.getenv("ADVIDEO_CLI_TIMEOUT", "1800"))

_default_api_url = f"http://localhost:{PORT}"
API_URL = os.getenv("ADVIDEO_API_URL", _default_api_url).rstrip("/")


class CLIError(Exception):
    """Custom exception for CLI errors."""

    pass


def parse_upload_response(response: httpx.Response) -> dict:
    """
    Parse the service's answer to an upload request.

    Returns:
        The JSON body of a successful upload

    Raises:
        CLIError: On an error status or a body that is not JSON
    """
    try:
        body = response.json()
    except ValueError:
        raise CLIError(
            f"Invalid response ({response.status_code}): "
            f"{truncate_error(response.text, ERROR_SUMMARY_MAX_LENGTH)}"
        )

    if not response.is_success:
        error = body.get("error", "Request failed") if isinstance(body, dict) else "Request failed"
        details = body.get("details") if isinstance(body, dict) else None
        message = f"{error} ({response.status_code})"
        if details:
            message += f": {truncate_error(str(details), ERROR_DETAIL_MAX_LENGTH)}"
        raise CLIError(message)

    return body


def cmd_upload(args):
    """Submit a video URL to the upload service and wait for the result."""
    api_url = args.api_url.rstrip("/")
    payload = {"video_url": args.url, "ad_account_id": args.account}

    try:
        with console.status(f"Uploading {args.url} to {args.account}..."):
            response = httpx.post(
                f"{api_url}/facebook/upload-video",
                json=payload,
                timeout=args.timeout,
            )
        result = parse_upload_response(response)
    except httpx.ConnectError:
        console.print(f"[red]Error:[/red] Could not connect to upload service at {api_url}")
        sys.exit(1)
    except httpx.TimeoutException:
        console.print(f"[red]Error:[/red] Upload did not complete within {args.timeout}s")
        sys.exit(1)
    except CLIError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        sys.exit(1)

    console.print(f"[green]Uploaded[/green] video_id={result['video_id']}")
    if result.get("warning"):
        console.print(f"[yellow]Warning:[/yellow] {escape(result['warning'])}")


def cmd_serve(args):
    """Run the upload API with uvicorn."""
    import uvicorn

    logging.basicConfig(level=args.log_level, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    uvicorn.run("api.app:app", host=args.host, port=args.port, log_level=args.log_level.lower())


def main():
    parser = argparse.ArgumentParser(prog="advideo", description="Ad video upload service")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Run the upload API")
    serve_parser.add_argument("--host", default=HOST, help=f"Bind address (default: {HOST})")
    serve_parser.add_argument("--port", type=positive_int, default=PORT, help=f"Port (default: {PORT})")
    serve_parser.add_argument(
        "--log-level",
        default=LOG_LEVEL,
        type=str.upper,
        choices=LOG_LEVELS,
        help=f"Log level (default: {LOG_LEVEL})",
    )
    serve_parser.set_defaults(func=cmd_serve)

    # Upload command
    upload_parser = subparsers.add_parser("upload", help="Upload a video from a URL via a running service")
    upload_parser.add_argument("url", help="HTTP(S) URL of the source video")
    upload_parser.add_argument("account", help="Ad account id (with or without act_ prefix)")
    upload_parser.add_argument("--api-url", default=API_URL, help=f"Upload service URL (default: {API_URL})")
    upload_parser.add_argument(
        "--timeout",
        type=positive_int,
        default=UPLOAD_REQUEST_TIMEOUT,
        help=f"Seconds to wait for the upload (default: {UPLOAD_REQUEST_TIMEOUT})",
    )
    upload_parser.set_defaults(func=cmd_upload)

    args = parser.parse_args()
    args.func(args)


if __name__ == "__main__":
    main()
