"""
Helper functions to make writing unit tests for the helpdesk core easier
"""

import os
import sys
import random
import string
import secrets
import unittest
from typing import Any, Dict, Iterable, Optional, Tuple, Union

import fastapi
import httpx
from fastapi.testclient import TestClient

from helpdesk_core import schemas as _schemas, settings as _settings
from helpdesk_core.api import auth
from helpdesk_core.api.api import create_app
from helpdesk_core.persistence import database, models
from helpdesk_core.version import API_PREFIX

from . import conf


class BaseTest(unittest.TestCase):
    """
    A base class for unit tests which introduces simple setup and teardown of unit tests

    If a subclass needs special setup or teardown functionality, it **MUST**
    call the superclasses setup and teardown methods: the superclass setup
    method at the beginning of the subclass setup method, the superclass
    teardown method at the end of the subclass teardown method.
    """

    config_file: Optional[str] = None
    database_url: Optional[str] = None
    _database_file: Optional[str] = None

    def setUp(self) -> None:
        self.config_file = f"config_{os.getpid()}_{secrets.token_hex(8)}.json"
        _settings.CONFIG_PATHS = [self.config_file]

        if conf.DATABASE_URL is not None:
            self.database_url = conf.DATABASE_URL

        else:
            self._database_file = conf.DATABASE_DEFAULT_FILE_FORMAT.format(
                os.getpid(),
                "".join([random.choice(string.ascii_lowercase) for _ in range(6)])
            )

            try:
                open(self._database_file, "wb").close()
                os.remove(self._database_file)
                self.database_url = conf.DATABASE_URL_FORMAT.format(self._database_file)

            except OSError as exc:
                self.database_url = conf.DATABASE_FALLBACK_URL
                self._database_file = None
                print(
                    f"{exc}: Falling back to in-memory database. This is not recommended!",
                    file=sys.stderr
                )

    def tearDown(self) -> None:
        if self.database_url != conf.DATABASE_FALLBACK_URL and self._database_file:
            if os.path.exists(self._database_file):
                os.remove(self._database_file)

        if self.config_file and os.path.exists(self.config_file):
            os.remove(self.config_file)

    def write_config(self) -> _schemas.config.CoreConfig:
        config = _settings.get_default_core_config(self.database_url)
        config.database.debug_sql = conf.SQLALCHEMY_ECHOING
        config.general.page_size = conf.PAGE_SIZE
        config.server.secret_key = conf.SECRET_KEY
        config.server.allow_weak_insecure_password_hashes = True
        with open(self.config_file, "w") as f:
            f.write(config.model_dump_json())
        return config


class BaseAPITests(BaseTest):
    """
    Base class for tests of the API, using an in-process test client for the application
    """

    app: fastapi.FastAPI
    client: TestClient
    token: Optional[str] = None

    def setUp(self) -> None:
        super().setUp()
        self.write_config()
        database.PRINT_SQLITE_WARNING = False
        self.settings = _settings.Settings()
        self.app = create_app(self.settings, configure_logging=False)
        self.client = TestClient(self.app, raise_server_exceptions=False)

    def tearDown(self) -> None:
        self.client.close()
        database.get_engine().dispose()
        super().tearDown()

    def make_user(self, name: str, is_manager: bool = False, email: Optional[str] = None) -> Tuple[int, str]:
        """
        Create a new user directly in the database and return its ID together with a fresh token
        """

        with database.get_new_session() as session:
            user = models.User(
                name=name,
                email=email or f"{name.lower()}@example.org",
                password=auth.hash_password(f"{name}-password"),
                is_manager=is_manager
            )
            session.add(user)
            session.commit()
            return user.id, auth.create_access_token(user, 5, conf.SECRET_KEY)

    def make_ticket(self, user_id: int, title: str = "Printer on fire", status: str = "A") -> int:
        with database.get_new_session() as session:
            ticket = models.Ticket(user_id=user_id, title=title, description=f"{title}!", status=status)
            session.add(ticket)
            session.commit()
            return ticket.id

    def count(self, model) -> int:
        with database.get_new_session() as session:
            return session.query(model).count()

    @staticmethod
    def ticket_document(title: str = "Broken chair", author: Optional[int] = None, **attributes) -> Dict[str, Any]:
        document = {"data": {"attributes": {"title": title, "description": "It wobbles.", "status": "A"}}}
        document["data"]["attributes"].update(attributes)
        if author is not None:
            document["data"]["relationships"] = {"author": {"data": {"id": author}}}
        return document

    @staticmethod
    def user_document(name: str, email: str, password: str = "secret-password", **attributes) -> Dict[str, Any]:
        document = {"data": {"attributes": {"name": name, "email": email, "password": password}}}
        document["data"]["attributes"].update(attributes)
        return document

    def assertQuery(
            self,
            endpoint: Tuple[str, str],
            status_code: Union[int, Iterable[int]] = 200,
            json: Optional[dict] = None,
            token: Optional[str] = None,
            no_auth: bool = False,
            no_prefix: bool = False,
            **kwargs
    ) -> httpx.Response:
        """
        Do a query to the specified endpoint and return the response

        The status code is checked twice: the transport status must match the
        asserted one, and the status in the body of error envelopes must match
        the transport status, with the exception of unmapped faults.

        :param endpoint: tuple of the method and the path of the endpoint below the API prefix
        :param status_code: asserted status code(s) of the response
        :param json: optional dictionary holding the request data
        :param token: optional bearer token overwriting the default token of the test
        :param no_auth: switch to send the request without any authorization header
        :param no_prefix: switch to not prepend the API prefix to the path
        :param kwargs: dict of any further keyword arguments, passed to the test client
        :return: response to the requested resource
        """

        method, path = endpoint
        headers = kwargs.pop("headers", {})
        if not no_auth:
            headers["Authorization"] = f"Bearer {token or self.token}"
        response = self.client.request(
            method.upper(),
            path if no_prefix else API_PREFIX + path,
            json=json,
            headers=headers,
            **kwargs
        )

        if isinstance(status_code, int):
            self.assertEqual(status_code, response.status_code, response.text)
        else:
            self.assertIn(response.status_code, status_code, response.text)

        if response.headers.get("Content-Type", "").startswith("application/json"):
            body = response.json()
            self.assertFalse("data" in body and "errors" in body, body)
            if "errors" in body and body["errors"][0]["status"] != 0:
                self.assertEqual(response.status_code, body["errors"][0]["status"], body)
        return response

    def assertError(self, response: httpx.Response, status: int, **fields) -> Dict[str, Any]:
        body = response.json()
        self.assertNotIn("data", body)
        self.assertEqual(1, len(body["errors"]), body)
        error = body["errors"][0]
        self.assertEqual(status, error["status"])
        for key in ("type", "message", "timestamp"):
            self.assertIn(key, error)
        for key, value in fields.items():
            self.assertEqual(value, error[key], error)
        return error
