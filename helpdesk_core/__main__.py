#!/usr/bin/env python3

import os
import sys
import getpass
import argparse
from typing import Optional

import uvicorn
import sqlalchemy.exc

from helpdesk_core import settings as _settings
from helpdesk_core.api import auth
from helpdesk_core.api.api import create_app
from helpdesk_core.persistence import database, models


def get_parser(program: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=program)

    commands = parser.add_subparsers(
        description="Available sub-commands: init, run, token",
        dest="command",
        required=True,
        metavar="<command>",
        help="the sub-command to be executed"
    )

    parser_init = commands.add_parser(
        "init",
        description="Initialize the project by creating the config file, the database tables and a manager"
    )

    parser_run = commands.add_parser(
        "run",
        description="Run 'uvicorn' ASGI server to serve the helpdesk core REST API"
    )

    parser_token = commands.add_parser(
        "token",
        description="Issue a new bearer token for an existing user"
    )

    parser_init.add_argument(
        "--database",
        type=str,
        metavar="url",
        help="Database connection URL including scheme and auth"
    )
    parser_init.add_argument(
        "--manager-name",
        type=str,
        metavar="name",
        help="Name of a manager account which should be created (requires '--manager-email')"
    )
    parser_init.add_argument(
        "--manager-email",
        type=str,
        metavar="email",
        help="Email address of the manager account (the password will be asked interactively)"
    )

    parser_run.add_argument(
        "--host",
        type=str,
        metavar="host",
        help="Bind TCP socket to this host (overwrite config)"
    )
    parser_run.add_argument(
        "--port",
        type=int,
        metavar="port",
        help="Bind TCP socket to this port (overwrite config)"
    )
    parser_run.add_argument(
        "--config",
        type=str,
        metavar="config",
        default="config.json",
        help="Overwrite the config file (defaults to 'config.json')"
    )
    parser_run.add_argument(
        "--debug",
        action="store_true",
        help="Enable full debug logging (probably insecure)"
    )
    parser_run.add_argument(
        "--debug-sql",
        action="store_true",
        help="Enable echoing of database actions (overwrites config)"
    )
    parser_run.add_argument(
        "--reload",
        action="store_true",
        help="Enable auto-reload"
    )
    parser_run.add_argument(
        "--workers",
        type=int,
        default=None,
        metavar="n",
        help="Number of worker processes (not valid with --reload)",
    )
    parser_run.add_argument(
        "--no-access-log",
        action="store_true",
        help="Disable access logs"
    )
    parser_run.add_argument(
        "--root-path",
        type=str,
        default="",
        metavar="p",
        help="Sub-mount the application below the given path"
    )

    parser_token.add_argument(
        "user",
        type=int,
        metavar="ID",
        help="Unique ID of the user who should own the token"
    )
    parser_token.add_argument(
        "--minutes",
        type=int,
        default=None,
        metavar="m",
        help="Validity of the token in minutes (defaults to the configured token expiration)"
    )

    return parser


def run_server(args: argparse.Namespace) -> int:
    if args.debug:
        print("Do not start the server this way during production!", file=sys.stderr)

    _settings.CONFIG_PATHS.insert(0, args.config)
    try:
        settings = _settings.Settings()
    except ValueError:
        print("Ensure that the configuration file is valid. Please correct any errors.", file=sys.stderr)
        raise

    if args.debug:
        settings.logging.root["level"] = "DEBUG"
        for handler in settings.logging.handlers:
            settings.logging.handlers[handler]["level"] = "DEBUG"
    if args.debug_sql:
        settings.database.debug_sql = args.debug_sql

    port = args.port
    if port is None:
        port = settings.server.port
    host = args.host
    if host is None:
        host = settings.server.host

    if settings.server.secret_key is None and (args.reload or (args.workers or 1) > 1):
        print(
            "No secret key has been configured, so tokens are only valid for the "
            "worker process that issued them. Set 'server.secret_key' to fix this.",
            file=sys.stderr
        )

    app = create_app(settings=settings)

    uvicorn.run(
        "helpdesk_core.api.api:api.app" if args.reload else app,
        port=port,
        host=host,
        reload=args.reload,
        workers=args.workers,
        log_level="debug" if args.debug else "info",
        log_config=settings.logging.model_dump(),
        access_log=not args.no_access_log,
        proxy_headers=True,
        root_path=args.root_path
    )
    return 0


def init_project(args: argparse.Namespace) -> int:
    _settings.SETTINGS_EXIT_ON_ERROR = False
    database_url = _settings.get_db_from_env(args.database)
    if not any(os.path.exists(path) for path in _settings.CONFIG_PATHS):
        _settings.store_configuration(_settings.get_default_core_config(database_url))
    elif args.database:
        print(
            "A config file has been found and will be used. The '--database' option "
            "is ignored. Remove the config file to create a fresh one.",
            file=sys.stderr
        )
    settings = _settings.Settings()
    database.init(settings.database.connection, settings.database.debug_sql)

    if (args.manager_name is None) != (args.manager_email is None):
        print("Both '--manager-name' and '--manager-email' are required for a manager.", file=sys.stderr)
        return 1

    if args.manager_name is not None:
        password = getpass.getpass()
        if len(password) < 8:
            print("The password must have at least 8 characters. No manager created!", file=sys.stderr)
            return 1
        with database.get_new_session() as session:
            session.add(models.User(
                name=args.manager_name,
                email=args.manager_email,
                password=auth.hash_password(password),
                is_manager=True
            ))
            try:
                session.commit()
            except sqlalchemy.exc.IntegrityError:
                session.rollback()
                print(f"A user with the email address {args.manager_email!r} already exists.", file=sys.stderr)
                return 1

    print("Done.")
    return 0


def issue_token(args: argparse.Namespace) -> int:
    settings = _settings.Settings()
    if settings.server.secret_key is None:
        print(
            "No secret key has been configured. Tokens signed by this command "
            "won't be accepted by any server process. Set 'server.secret_key' first.",
            file=sys.stderr
        )
        return 1
    database.init(settings.database.connection, settings.database.debug_sql)
    with database.get_new_session() as session:
        user = session.get(models.User, args.user)
        if user is None:
            print(f"No user with ID {args.user} found.", file=sys.stderr)
            return 1
        print(auth.create_access_token(
            user,
            args.minutes or settings.server.token_expiration_minutes,
            settings.server.secret_key
        ))
    return 0


def main(program: Optional[str] = None) -> int:
    parser = get_parser(program or os.path.basename(sys.argv[0]))
    args = parser.parse_args()

    if args.command == "init":
        return init_project(args)
    elif args.command == "run":
        return run_server(args)
    elif args.command == "token":
        return issue_token(args)
    parser.error(f"Unknown command {args.command!r}")
    return 1


if __name__ == "__main__":
    sys.exit(main(f"{sys.executable} -m helpdesk_core"))
