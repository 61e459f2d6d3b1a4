# User value: shared fakes so API tests exercise real routing and SQL without Firebase or Gemini.
import os
import tempfile

from fastapi.testclient import TestClient
from sqlalchemy import func, select

from app import create_app
from services.db import create_db_engine, ocr_histories, users
from services.identity import IdentityVerificationError


class FakeIdentityVerifier:
    def __init__(self):
        self.identities = {}

    def register(self, token: str, uid: str, email: str) -> dict:
        self.identities[token] = {"uid": uid, "email": email}
        return {"Authorization": f"Bearer {token}"}

    def verify(self, token: str) -> dict:
        identity = self.identities.get(token)
        if identity is None:
            raise IdentityVerificationError("signature mismatch")
        return {**identity, "claims": {"sub": identity["uid"]}}


class FakeOcrDelegate:
    def __init__(self, result: str = '{\n  "full_text": "hello"\n}', error: Exception | None = None):
        self.result = result
        self.error = error
        self.calls = []

    def perform_ocr(self, content: bytes, mime_type: str, ocr_language: str, document_type: str) -> str:
        self.calls.append(
            {
                "size": len(content),
                "mime_type": mime_type,
                "ocr_language": ocr_language,
                "document_type": document_type,
            }
        )
        if self.error is not None:
            raise self.error
        return self.result


class ApiHarness:
    """TestClient around a real app on a throwaway SQLite file."""

    def __init__(self, delegate: FakeOcrDelegate | None = None):
        self._tmp = tempfile.TemporaryDirectory()
        self.engine = create_db_engine(f"sqlite:///{os.path.join(self._tmp.name, 'test.db')}")
        self.verifier = FakeIdentityVerifier()
        self.delegate = delegate or FakeOcrDelegate()
        self.app = create_app(engine=self.engine, identity_verifier=self.verifier, ocr_delegate=self.delegate)
        self.client = TestClient(self.app)

    def __enter__(self):
        self.client.__enter__()
        return self

    def __exit__(self, *exc):
        self.client.__exit__(*exc)
        self.engine.dispose()
        self._tmp.cleanup()

    @property
    def directory(self):
        return self.app.state.user_directory

    def login(self, token: str, uid: str, email: str, role: str | None = None) -> dict:
        headers = self.verifier.register(token, uid, email)
        if role:
            self.directory.provision(uid=uid, email=email)
            self.directory.update_role(uid, role)
        return headers

    def count_users(self, **filters) -> int:
        stmt = select(func.count()).select_from(users)
        for key, value in filters.items():
            stmt = stmt.where(users.c[key] == value)
        with self.engine.connect() as conn:
            return conn.execute(stmt).scalar()

    def count_records(self, **filters) -> int:
        stmt = select(func.count()).select_from(ocr_histories)
        for key, value in filters.items():
            stmt = stmt.where(ocr_histories.c[key] == value)
        with self.engine.connect() as conn:
            return conn.execute(stmt).scalar()
