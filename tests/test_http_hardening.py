import os
import unittest

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

from crudkit.core.http_hardening import _request_id_from_header
from crudkit.db.session import get_db
from crudkit.main import app
from crudkit.models.book import Book


class CrudRequestLogTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.engine = create_engine(
            "sqlite+pysqlite:///:memory:",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        cls.SessionLocal = sessionmaker(bind=cls.engine, autocommit=False, autoflush=False)
        Book.__table__.create(bind=cls.engine)

    @classmethod
    def tearDownClass(cls):
        Book.__table__.drop(bind=cls.engine)
        cls.engine.dispose()

    def setUp(self):
        def override_get_db():
            db = self.SessionLocal()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = override_get_db
        self.client = TestClient(app)

    def tearDown(self):
        self.client.close()
        app.dependency_overrides.clear()

    def test_plain_route_gets_headers_and_request_id(self):
        with self.assertLogs("crudkit.http", level="INFO") as logs:
            response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.headers.get("x-content-type-options"), "nosniff")
        self.assertEqual(response.headers.get("cache-control"), "no-store")
        request_id = response.headers.get("x-request-id")
        self.assertRegex(str(request_id), r"^[A-Za-z0-9._-]{1,128}$")
        self.assertNotIn("crud=", logs.output[0])
        self.assertIn(f"request_id={request_id}", logs.output[0])

    def test_access_line_names_the_crud_action(self):
        with self.assertLogs("crudkit.http", level="INFO") as logs:
            response = self.client.get("/books/list")
        self.assertEqual(response.status_code, 200)
        self.assertIn("GET /books/list crud=Book/list errors=0 status=200", logs.output[0])

    def test_recorded_error_is_logged_with_the_callers_request_id(self):
        with self.assertLogs("crudkit.controller", level="WARNING") as controller_logs:
            with self.assertLogs("crudkit.http", level="INFO") as http_logs:
                response = self.client.get("/books/999/view", headers={"X-Request-ID": "trace-404"})
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.headers.get("x-request-id"), "trace-404")
        self.assertIn("crud=Book/view errors=1 (NotFound) status=404", http_logs.output[0])
        self.assertIn("request_id=trace-404", http_logs.output[0])
        self.assertIn("request_id=trace-404", controller_logs.output[0])

    def test_raised_error_is_counted(self):
        with self.assertLogs("crudkit.http", level="INFO") as logs:
            response = self.client.get("/books/list", params={"year": "abc"})
        self.assertEqual(response.status_code, 400)
        self.assertIn("crud=Book/list errors=1 (ValidationFailure) status=400", logs.output[0])

    def test_invalid_request_id_is_replaced(self):
        self.assertNotEqual(_request_id_from_header("bad id with spaces"), "bad id with spaces")
        self.assertEqual(len(_request_id_from_header(None)), 32)
        response = self.client.get("/health", headers={"X-Request-ID": "bad id with spaces"})
        self.assertNotEqual(response.headers.get("x-request-id"), "bad id with spaces")


if __name__ == "__main__":
    unittest.main()
