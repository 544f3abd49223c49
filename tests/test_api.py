"""
Helpdesk unit tests for the whole API in certain user actions
"""

import io
import os
import shutil
import logging
import tempfile
import contextlib
import logging.config

from helpdesk_core.api import api, errors
from helpdesk_core.persistence import database, models
from helpdesk_core.schemas import AUTHOR_FIELD

from . import utils


class APITests(utils.BaseAPITests):
    def setUp(self) -> None:
        super().setUp()
        self.manager_id, self.manager_token = self.make_user("Manager", is_manager=True)
        self.alice_id, self.alice_token = self.make_user("Alice")
        self.bob_id, self.bob_token = self.make_user("Bob")
        self.token = self.manager_token

    def test_health_and_redirect_to_docs(self):
        response = self.assertQuery(("GET", "/health"), 200, no_auth=True)
        self.assertEqual({"data": {"message": "OK"}}, response.json())

        response = self.assertQuery(("GET", "/"), [302, 303, 307], no_auth=True, no_prefix=True, follow_redirects=False)
        self.assertIn("docs", response.headers.get("Location"))
        self.assertQuery(("GET", "/openapi.json"), 200, no_auth=True, no_prefix=True)

    def test_authentication_required(self):
        response = self.assertQuery(("GET", "/tickets"), 401, no_auth=True)
        self.assertError(response, 401, message=errors.AUTHENTICATION_MESSAGE)
        self.assertEqual("Bearer", response.headers.get("WWW-Authenticate"))

        self.assertQuery(("GET", "/tickets"), 401, token="not-a-valid-token")
        self.assertQuery(("DELETE", "/tickets/1"), 401, no_auth=True)

        gone_id, gone_token = self.make_user("Gone")
        with database.get_new_session() as session:
            session.delete(session.get(models.User, gone_id))
            session.commit()
        self.assertQuery(("GET", "/tickets"), 401, token=gone_token)

    def test_create_and_show_ticket(self):
        response = self.assertQuery(
            ("POST", "/tickets"),
            201,
            json=self.ticket_document("Broken chair", author=self.alice_id),
            token=self.alice_token
        )
        data = response.json()["data"]
        self.assertEqual("ticket", data["type"])
        self.assertEqual("Broken chair", data["attributes"]["title"])
        self.assertEqual("It wobbles.", data["attributes"]["description"])
        self.assertEqual("A", data["attributes"]["status"])
        self.assertIsNotNone(data["attributes"]["createdAt"])
        self.assertEqual({"type": "user", "id": self.alice_id}, data["relationships"]["author"]["data"])
        self.assertTrue(data["links"]["self"].endswith(f"/api/v1/tickets/{data['id']}"))

        shown = self.assertQuery(("GET", f"/tickets/{data['id']}"), token=self.bob_token).json()["data"]
        self.assertEqual(data["attributes"], shown["attributes"])
        self.assertNotIn("includes", shown)

        shown = self.assertQuery(("GET", f"/tickets/{data['id']}?include=Author"), 200).json()["data"]
        self.assertEqual("user", shown["includes"]["type"])
        self.assertEqual(self.alice_id, shown["includes"]["id"])
        self.assertEqual("Alice", shown["includes"]["attributes"]["name"])
        self.assertNotIn("password", shown["includes"]["attributes"])

    def test_author_assignment(self):
        response = self.assertQuery(
            ("POST", "/tickets"),
            422,
            json=self.ticket_document(author=self.bob_id),
            token=self.alice_token
        )
        error = self.assertError(response, 422, message=errors.VALIDATION_MESSAGE)
        self.assertEqual([AUTHOR_FIELD], [e["field"] for e in error["validation_errors"]])

        response = self.assertQuery(("POST", "/tickets"), 422, json=self.ticket_document(author=999))
        error = self.assertError(response, 422)
        self.assertEqual(AUTHOR_FIELD, error["validation_errors"][0]["field"])
        self.assertEqual(0, self.count(models.Ticket))

        response = self.assertQuery(("POST", "/tickets"), 201, json=self.ticket_document(author=self.bob_id))
        self.assertEqual(self.bob_id, response.json()["data"]["relationships"]["author"]["data"]["id"])

        ticket_id = response.json()["data"]["id"]
        patch = {"data": {"relationships": {"author": {"data": {"id": self.alice_id}}}}}
        self.assertQuery(("PATCH", f"/tickets/{ticket_id}"), 403, json=patch, token=self.alice_token)
        self.assertQuery(("PATCH", f"/tickets/{ticket_id}"), 422, json=patch, token=self.bob_token)

    def test_malformed_ticket_body(self):
        response = self.assertQuery(
            ("POST", "/tickets"),
            422,
            json={"data": {"attributes": {"title": "", "status": "Z"}}},
            token=self.alice_token
        )
        error = self.assertError(response, 422, message=errors.VALIDATION_MESSAGE)
        fields = {e["field"] for e in error["validation_errors"]}
        self.assertTrue({
            "data.attributes.title",
            "data.attributes.description",
            "data.attributes.status",
            "data.relationships"
        }.issubset(fields), fields)
        for entry in error["validation_errors"]:
            self.assertTrue(entry["message"])
        self.assertEqual(0, self.count(models.Ticket))

        response = self.assertQuery(
            ("POST", "/tickets"),
            422,
            content=b"{no json",
            headers={"Content-Type": "application/json"}
        )
        error = self.assertError(response, 422)
        self.assertEqual(["body"], [e["field"] for e in error["validation_errors"]])
        self.assertQuery(("GET", "/tickets/zero"), 422)

    def test_delete_ticket_by_non_owner(self):
        ticket_id = self.make_ticket(self.alice_id)

        response = self.assertQuery(("DELETE", f"/tickets/{ticket_id}"), 403, token=self.bob_token)
        self.assertError(response, 403, message=errors.AUTHORIZATION_MESSAGE)
        self.assertEqual(1, self.count(models.Ticket))

        response = self.assertQuery(("DELETE", f"/tickets/{ticket_id}"), 200, token=self.alice_token)
        self.assertEqual({"data": {"message": "Ticket successfully deleted"}}, response.json())
        self.assertEqual(0, self.count(models.Ticket))

        response = self.assertQuery(("DELETE", f"/tickets/{ticket_id}"), 404, token=self.alice_token)
        self.assertError(response, 404, source="Ticket")

    def test_missing_ticket(self):
        response = self.assertQuery(("GET", "/tickets/999"), 404)
        self.assertError(response, 404, source="Ticket", message=errors.RESOURCE_NOT_FOUND_MESSAGE)
        self.assertQuery(("PUT", "/tickets/999"), 404, json=self.ticket_document(author=self.manager_id))
        self.assertQuery(("PATCH", "/tickets/999"), 404, json={"data": {}})

    def test_update_keeps_unspecified_fields(self):
        ticket_id = self.make_ticket(self.alice_id, "Printer on fire")

        response = self.assertQuery(
            ("PATCH", f"/tickets/{ticket_id}"),
            200,
            json={"data": {"attributes": {"status": "C"}}},
            token=self.alice_token
        )
        attributes = response.json()["data"]["attributes"]
        self.assertEqual("C", attributes["status"])
        self.assertEqual("Printer on fire", attributes["title"])
        self.assertEqual("Printer on fire!", attributes["description"])

        response = self.assertQuery(("PATCH", f"/tickets/{ticket_id}"), 200, json={"data": {}}, token=self.alice_token)
        self.assertEqual(attributes["title"], response.json()["data"]["attributes"]["title"])
        self.assertEqual("C", response.json()["data"]["attributes"]["status"])

        self.assertQuery(
            ("PATCH", f"/tickets/{ticket_id}"),
            403,
            json={"data": {"attributes": {"status": "X"}}},
            token=self.bob_token
        )

    def test_replace_overwrites_all_fields(self):
        ticket_id = self.make_ticket(self.alice_id, "Printer on fire")
        document = self.ticket_document("Printer fixed", author=self.bob_id, description="New toner.", status="H")

        self.assertQuery(("PUT", f"/tickets/{ticket_id}"), 403, json=document, token=self.alice_token)
        self.assertQuery(("PUT", f"/tickets/{ticket_id}"), 422, json={"data": {"attributes": {"title": "x"}}})

        data = self.assertQuery(("PUT", f"/tickets/{ticket_id}"), 200, json=document).json()["data"]
        self.assertEqual("Printer fixed", data["attributes"]["title"])
        self.assertEqual("New toner.", data["attributes"]["description"])
        self.assertEqual("H", data["attributes"]["status"])
        self.assertEqual(self.bob_id, data["relationships"]["author"]["data"]["id"])

    def test_users(self):
        document = self.user_document("Carol", "carol@example.org")
        self.assertQuery(("POST", "/users"), 403, json=document, token=self.alice_token)

        data = self.assertQuery(("POST", "/users"), 201, json=document).json()["data"]
        self.assertEqual("user", data["type"])
        self.assertEqual({"name", "email", "isManager", "createdAt", "updatedAt"}, set(data["attributes"]))
        self.assertFalse(data["attributes"]["isManager"])
        with database.get_new_session() as session:
            self.assertNotEqual("secret-password", session.get(models.User, data["id"]).password)

        response = self.assertQuery(("POST", "/users"), 409, json=self.user_document("Carol 2", "carol@example.org"))
        self.assertError(response, 409, message=errors.DUPLICATE_MESSAGE)
        self.assertEqual(4, self.count(models.User))

        response = self.assertQuery(
            ("PATCH", f"/users/{data['id']}"),
            200,
            json={"data": {"attributes": {"isManager": True}}}
        )
        self.assertTrue(response.json()["data"]["attributes"]["isManager"])
        self.assertEqual("Carol", response.json()["data"]["attributes"]["name"])

        self.assertQuery(
            ("PUT", f"/users/{data['id']}"),
            422,
            json=self.user_document("Carol", "carol@example.org")
        )
        response = self.assertQuery(
            ("PUT", f"/users/{data['id']}"),
            200,
            json=self.user_document("Caroline", "caroline@example.org", isManager=False)
        )
        self.assertEqual("caroline@example.org", response.json()["data"]["attributes"]["email"])

        self.assertQuery(("PATCH", f"/users/{data['id']}"), 403, json={"data": {}}, token=self.alice_token)
        self.assertQuery(("DELETE", f"/users/{data['id']}"), 403, token=self.alice_token)

    def test_delete_user_with_tickets(self):
        self.make_ticket(self.alice_id)

        response = self.assertQuery(("DELETE", f"/users/{self.alice_id}"), 409)
        self.assertError(response, 409, message=errors.FOREIGN_KEY_MESSAGE)
        self.assertEqual(3, self.count(models.User))

        response = self.assertQuery(("DELETE", f"/users/{self.bob_id}"), 200)
        self.assertEqual({"data": {"message": "User successfully deleted"}}, response.json())
        self.assertQuery(("GET", f"/users/{self.bob_id}"), 404)

    def test_include_tickets_of_user(self):
        self.make_ticket(self.alice_id, "First")
        self.make_ticket(self.alice_id, "Second")

        data = self.assertQuery(("GET", f"/users/{self.alice_id}?include=Tickets")).json()["data"]
        self.assertEqual(["First", "Second"], [t["attributes"]["title"] for t in data["includes"]])
        self.assertNotIn("includes", self.assertQuery(("GET", f"/users/{self.alice_id}?include=foo")).json()["data"])

    def test_method_and_route_errors(self):
        ticket_id = self.make_ticket(self.alice_id)

        response = self.assertQuery(("POST", f"/tickets/{ticket_id}"), 405)
        error = self.assertError(response, 405, message="The POST method is not allowed for this endpoint.")
        self.assertIn("GET", error["allowed_methods"])

        response = self.assertQuery(("GET", "/unknown"), 404, no_auth=True)
        self.assertError(
            response,
            404,
            source="Not Found",
            message="The requested endpoint '/api/v1/unknown' was not found."
        )

    def test_uncategorized_fault(self):
        @self.app.get("/explode")
        async def explode():
            raise RuntimeError("The flux capacitor broke")

        response = self.assertQuery(("GET", "/explode"), 500, no_prefix=True)
        error = self.assertError(response, 0, message="The flux capacitor broke", type="RuntimeError")
        self.assertTrue(error["source"].startswith("Line: "), error)
        self.assertTrue(error["timestamp"].endswith("Z"))


class AuthorTests(utils.BaseAPITests):
    def setUp(self) -> None:
        super().setUp()
        self.manager_id, self.token = self.make_user("Manager", is_manager=True)
        self.alice_id, self.alice_token = self.make_user("Alice")
        self.bob_id, self.bob_token = self.make_user("Bob")
        self.alice_ticket = self.make_ticket(self.alice_id, "Alice's ticket")
        self.bob_ticket = self.make_ticket(self.bob_id, "Bob's ticket")

    def test_authors_are_users_with_tickets(self):
        data = self.assertQuery(("GET", "/authors")).json()["data"]
        self.assertEqual([self.alice_id, self.bob_id], [a["id"] for a in data])
        self.assertTrue(data[0]["links"]["self"].endswith(f"/api/v1/authors/{self.alice_id}"))

        response = self.assertQuery(("GET", f"/authors/{self.manager_id}"), 404)
        self.assertError(response, 404, source="User")

        data = self.assertQuery(("GET", f"/authors/{self.bob_id}?include=tickets")).json()["data"]
        self.assertEqual([self.bob_ticket], [t["id"] for t in data["includes"]])

    def test_foreign_tickets_are_hidden(self):
        path = f"/authors/{self.alice_id}/tickets"
        hidden = self.assertQuery(("GET", f"{path}/{self.bob_ticket}"), 404)
        missing = self.assertQuery(("GET", f"{path}/999"), 404)
        hidden_error = self.assertError(hidden, 404)
        missing_error = self.assertError(missing, 404)
        for key in ("type", "status", "message", "source"):
            self.assertEqual(missing_error[key], hidden_error[key])

        self.assertQuery(("DELETE", f"{path}/{self.bob_ticket}"), 404)
        self.assertQuery(("PATCH", f"{path}/{self.bob_ticket}"), 404, json={"data": {}})
        self.assertEqual(2, self.count(models.Ticket))

        data = self.assertQuery(("GET", path)).json()["data"]
        self.assertEqual([self.alice_ticket], [t["id"] for t in data])
        self.assertNotIn("description", data[0]["attributes"])

        data = self.assertQuery(("GET", f"{path}/{self.alice_ticket}")).json()["data"]
        self.assertEqual("Alice's ticket!", data["attributes"]["description"])

    def test_author_scoped_actions(self):
        path = f"/authors/{self.alice_id}/tickets"
        document = self.ticket_document("Scoped")

        data = self.assertQuery(("POST", path), 201, json=document, token=self.alice_token).json()["data"]
        self.assertEqual(self.alice_id, data["relationships"]["author"]["data"]["id"])

        self.assertQuery(("POST", path), 422, json=document, token=self.bob_token)
        self.assertQuery(("POST", "/authors/999/tickets"), 422, json=document)

        self.assertQuery(("DELETE", f"{path}/{data['id']}"), 403, token=self.bob_token)
        response = self.assertQuery(("DELETE", f"{path}/{data['id']}"), 200, token=self.alice_token)
        self.assertEqual("Ticket successfully deleted", response.json()["data"]["message"])


class ListTests(utils.BaseAPITests):
    def setUp(self) -> None:
        super().setUp()
        self.manager_id, self.token = self.make_user("Manager", is_manager=True)
        self.tickets = [
            self.make_ticket(self.manager_id, title, status)
            for title, status in [
                ("Printer on fire", "A"),
                ("Printer jammed", "C"),
                ("Coffee machine empty", "A"),
                ("Chair broken", "H"),
                ("Lights flicker", "C"),
                ("Window stuck", "X"),
                ("Printer out of paper", "A")
            ]
        ]

    def test_pagination(self):
        body = self.assertQuery(("GET", "/tickets")).json()
        self.assertEqual(self.tickets[:5], [t["id"] for t in body["data"]])
        self.assertEqual(
            {"current_page": 1, "last_page": 2, "per_page": 5, "total": 7, "from": 1, "to": 5},
            body["meta"]
        )
        self.assertIsNone(body["links"]["prev"])
        self.assertIn("page=2", body["links"]["next"])
        self.assertIn("page=2", body["links"]["last"])
        self.assertNotIn("errors", body)
        for ticket in body["data"]:
            self.assertNotIn("description", ticket["attributes"])

        body = self.assertQuery(("GET", "/tickets?page=2")).json()
        self.assertEqual(self.tickets[5:], [t["id"] for t in body["data"]])
        self.assertEqual((6, 7), (body["meta"]["from"], body["meta"]["to"]))
        self.assertIsNone(body["links"]["next"])
        self.assertIn("page=1", body["links"]["prev"])

        body = self.assertQuery(("GET", "/tickets?page=3")).json()
        self.assertEqual([], body["data"])
        self.assertIsNone(body["meta"]["from"])

        self.assertQuery(("GET", "/tickets?page=0"), 422)

    def test_filters_and_sorting(self):
        def _ids(**params) -> list:
            return [t["id"] for t in self.assertQuery(("GET", "/tickets"), params=params).json()["data"]]

        self.assertEqual([self.tickets[1], self.tickets[4]], _ids(**{"filter[status]": "C"}))
        self.assertEqual(
            [self.tickets[1], self.tickets[3], self.tickets[4]],
            _ids(**{"filter[status]": "C,H"})
        )
        self.assertEqual(
            [self.tickets[0], self.tickets[1], self.tickets[6]],
            _ids(**{"filter[title]": "Printer*"})
        )
        self.assertEqual([self.tickets[3]], _ids(**{"filter[title]": "Chair broken"}))
        self.assertEqual(self.tickets[::-1][:5], _ids(sort="-id"))
        self.assertEqual(
            [self.tickets[3], self.tickets[2], self.tickets[4], self.tickets[1], self.tickets[0]],
            _ids(sort="title")
        )
        self.assertEqual(self.tickets[:5], _ids(sort="unknown"))
        self.assertEqual(self.tickets[:5], _ids(**{"filter[unknown]": "foo"}))

        response = self.assertQuery(("GET", "/tickets"), 422, params={"filter[createdAt]": "yesterday"})
        error = self.assertError(response, 422)
        self.assertEqual("filter[createdAt]", error["validation_errors"][0]["field"])

        body = self.assertQuery(("GET", "/tickets"), params={"filter[createdAt]": "2000-01-01,2999-12-31"}).json()
        self.assertEqual(7, body["meta"]["total"])
        body = self.assertQuery(("GET", "/tickets"), params={"filter[createdAt]": "2000-01-01"}).json()
        self.assertEqual(0, body["meta"]["total"])

    def test_user_filters(self):
        alice_id, _ = self.make_user("Alice")
        body = self.assertQuery(("GET", "/users"), params={"filter[name]": "Ali*"}).json()
        self.assertEqual([alice_id], [u["id"] for u in body["data"]])
        body = self.assertQuery(("GET", "/users"), params={"filter[id]": f"{self.manager_id},{alice_id}"}).json()
        self.assertEqual(2, body["meta"]["total"])
        self.assertQuery(("GET", "/users"), 422, params={"filter[id]": "one"})


class FaultLoggingTests(utils.BaseAPITests):
    def setUp(self) -> None:
        super().setUp()
        self.manager_id, self.token = self.make_user("Manager", is_manager=True)
        self.log_directory = tempfile.mkdtemp()

    def tearDown(self) -> None:
        for name in (None, "helpdesk_core.faults", "uvicorn.access"):
            logger = logging.getLogger(name)
            for handler in list(logger.handlers):
                logger.removeHandler(handler)
                handler.close()
            logger.propagate = True
        logging.getLogger().setLevel(logging.WARNING)
        shutil.rmtree(self.log_directory, ignore_errors=True)
        super().tearDown()

    def configure_logging(self) -> io.StringIO:
        config = self.settings.logging.model_dump()
        for handler in config["handlers"].values():
            if "filename" in handler:
                handler["filename"] = os.path.join(self.log_directory, os.path.basename(handler["filename"]))
        with contextlib.redirect_stdout(io.StringIO()) as stream:
            logging.config.dictConfig(config)
        return stream

    def test_fault_context_is_written(self):
        stream = self.configure_logging()
        document = self.user_document("Carol", "carol@example.org")
        self.assertQuery(("POST", "/users"), 201, json=document)
        self.assertQuery(("POST", "/users"), 409, json=document)
        self.assertQuery(("POST", "/users"), 422, json={"data": {"attributes": {"name": "Dave"}}})

        with open(os.path.join(self.log_directory, "helpdesk.log"), encoding="UTF-8") as f:
            written = f.read()
        for output in (stream.getvalue(), written):
            self.assertIn("Database query failed: IntegrityError", output)
            self.assertIn("INSERT INTO users", output)
            self.assertIn("'ip': 'testclient'", output)
            self.assertIn("'method': 'POST'", output)
            self.assertIn("'exception': 'sqlalchemy.exc.IntegrityError'", output)
            self.assertIn("'field': 'data.attributes.email'", output)

    def test_wrapper_keeps_created_app(self):
        wrapper = api.APIWrapper()
        wrapper._app = self.app
        self.assertIs(self.app, wrapper.app)
