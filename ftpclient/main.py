"""Command-line entry point for ftpclient.

Parses arguments, resolves connection settings and credentials, runs
one FTP operation and reports the outcome.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from ftpclient.config.credentials import CredentialManager
from ftpclient.config.paths import get_log_file_path
from ftpclient.config.settings import ClientSettings, SettingsManager
from ftpclient.ftp.client import FTPClient
from ftpclient.ftp.exceptions import FTPError
from ftpclient.ftp.session import DeadlineMode
from ftpclient.utils.logging import setup_logging


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser with one subcommand per operation."""
    parser = argparse.ArgumentParser(
        prog="ftpclient",
        description="Transfer files with an FTP server in passive mode."
    )
    parser.add_argument("-H", "--host", help="FTP server address (default: last used)")
    parser.add_argument("-p", "--port", type=int, help="Control port (default: last used or 21)")
    parser.add_argument("-u", "--user", help="User name (default: last used or anonymous)")
    parser.add_argument("-P", "--password", help="Password (default: keyring)")
    parser.add_argument("--path", help="Initial remote working directory")
    parser.add_argument("-t", "--timeout", type=int, help="Timeout in seconds (5-300)")
    parser.add_argument(
        "--idle-timeout",
        action="store_true",
        help="Apply the timeout per read instead of as a total transfer ceiling"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Echo the protocol exchange")
    parser.add_argument(
        "--save-password",
        action="store_true",
        help="Store the password in the system keyring after a successful login"
    )
    parser.add_argument("--log-file", type=Path, help="Log file (default: app data directory)")

    subparsers = parser.add_subparsers(dest="command", required=True, help="Operation to run")

    upload = subparsers.add_parser("upload", help="Upload a file")
    upload.add_argument("local_path", type=Path)
    upload.add_argument("--resume", action="store_true", help="Continue a partial upload")

    download = subparsers.add_parser("download", help="Download a file")
    download.add_argument("remote_name")
    download.add_argument("local_path", nargs="?", default="")
    download.add_argument("--resume", action="store_true", help="Continue a partial download")

    listing = subparsers.add_parser("list", help="List names with NLST")
    listing.add_argument("mask", nargs="?", default="")

    rename = subparsers.add_parser("rename", help="Rename a remote file")
    rename.add_argument("old_name")
    rename.add_argument("new_name")
    rename.add_argument("--no-replace", action="store_true", help="Fail if new_name exists")

    delete = subparsers.add_parser("delete", help="Delete a remote file")
    delete.add_argument("name")

    mkdir = subparsers.add_parser("mkdir", help="Create a remote directory")
    mkdir.add_argument("name")

    size = subparsers.add_parser("size", help="Print the size of a remote file")
    size.add_argument("remote_name")

    upload_dir = subparsers.add_parser("upload-dir", help="Upload a local directory")
    upload_dir.add_argument("local_dir", type=Path)
    upload_dir.add_argument("-r", "--recursive", action="store_true")
    upload_dir.add_argument("-m", "--mask", default="*", help="File mask (default: *)")

    return parser


def resolve_settings(args: argparse.Namespace, saved: ClientSettings) -> ClientSettings:
    """Overlay command-line options on the saved settings."""
    return ClientSettings(
        last_host=args.host or saved.last_host,
        last_port=args.port or saved.last_port,
        last_username=args.user or saved.last_username,
        initial_directory=args.path if args.path is not None else saved.initial_directory,
        timeout=args.timeout or saved.timeout,
        verbose=args.verbose or saved.verbose,
        deadline_mode=DeadlineMode.IDLE.value if args.idle_timeout else saved.deadline_mode
    )


def run_command(client: FTPClient, args: argparse.Namespace) -> None:
    """Run the selected subcommand on a logged-in client."""
    if args.command == "upload":
        result = client.upload(args.local_path, resume=args.resume)
        if result.skipped:
            print(f"{result.remote_name} already complete")
        else:
            print(f"Uploaded {result.bytes_transferred} bytes to {result.remote_name}")
    elif args.command == "download":
        result = client.download(args.remote_name, args.local_path, resume=args.resume)
        print(f"Downloaded {result.bytes_transferred} bytes to {result.local_path}")
        if result.truncated:
            print("Warning: transfer deadline reached, file may be incomplete", file=sys.stderr)
    elif args.command == "list":
        for name in client.list_simple(args.mask):
            print(name)
    elif args.command == "rename":
        client.rename(args.old_name, args.new_name, replace_if_exists=not args.no_replace)
    elif args.command == "delete":
        client.delete(args.name)
    elif args.command == "mkdir":
        client.create_directory(args.name)
    elif args.command == "size":
        print(client.size(args.remote_name))
    elif args.command == "upload-dir":
        results = client.upload_directory(args.local_dir, args.recursive, args.mask)
        sent = [r for r in results if not r.skipped]
        print(f"Uploaded {len(sent)} of {len(results)} files")


def main(argv: Optional[List[str]] = None) -> int:
    """
    Run the command line.

    Args:
        argv: Arguments without the program name, defaults to sys.argv

    Returns:
        Process exit code
    """
    args = build_parser().parse_args(argv)

    logger = setup_logging(
        level=logging.INFO if args.verbose else logging.WARNING,
        log_file=args.log_file or get_log_file_path()
    )

    settings_manager = SettingsManager()
    credential_manager = CredentialManager()
    settings = resolve_settings(args, settings_manager.load())

    password = args.password
    if password is None:
        password = credential_manager.get_password(
            settings.last_host,
            settings.last_username
        ) or ""

    try:
        config = settings.to_session_config(password)
    except ValueError as e:
        print(f"Invalid settings: {e}", file=sys.stderr)
        return 2

    try:
        with FTPClient(config, logger=logger) as client:
            settings_manager.save(settings)
            if args.save_password and password:
                credential_manager.save_password(config.host, config.username, password)
            run_command(client, args)
    except FTPError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


def run() -> None:
    """Console script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    run()
