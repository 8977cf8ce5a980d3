from http import HTTPStatus

from fastapi.testclient import TestClient
from sqlalchemy import inspect
from sqlalchemy.pool import StaticPool

from app.config import Settings
from app.main import create_app


def _settings(**overrides) -> Settings:
    return Settings(_env_file=None, database_url="sqlite://", **overrides)


def test_create_app_owns_one_engine_and_session_factory():
    app = create_app(settings=_settings(create_tables_on_startup=False))

    engine = app.state.engine
    assert isinstance(engine.pool, StaticPool)
    assert app.state.session_factory.kw["bind"] is engine


def test_startup_skips_create_all_when_migrations_own_the_schema():
    app = create_app(settings=_settings(create_tables_on_startup=False))

    with TestClient(app) as client:
        assert not inspect(app.state.engine).has_table("users")
        assert client.get("/health").json() == {"status": "ok"}


def test_app_serves_requests_on_its_own_engine():
    """End to end through the engine, session factory and `get_db` built by create_app."""
    app = create_app(settings=_settings(create_tables_on_startup=True))

    with TestClient(app) as client:
        assert inspect(app.state.engine).has_table("users")

        first = client.post("/api/user/create", json={"email": "a@x.com"})
        assert first.status_code == HTTPStatus.OK

        again = client.post("/api/user/create", json={"email": "a@x.com"})
        assert again.status_code == HTTPStatus.INTERNAL_SERVER_ERROR

        many = client.post(
            "/api/user/create-many",
            json={"users": [{"email": "a@x.com"}, {"email": "b@x.com"}]},
        )
        assert many.json()["count"] == 1

        users = client.get("/api/user/get-all").json()["users"]
        assert sorted(u["email"] for u in users) == ["a@x.com", "b@x.com"]


def test_each_request_gets_its_own_session_and_closes_it(db_session):
    app = create_app(engine=db_session.get_bind())
    real_factory = app.state.session_factory
    opened = []

    def tracking_factory():
        session = real_factory()
        close = session.close

        def _close():
            session.info["closed"] = True
            close()

        session.close = _close
        opened.append(session)
        return session

    app.state.session_factory = tracking_factory

    with TestClient(app) as client:
        client.post("/api/user/create", json={"email": "one@x.com"})
        client.get("/api/user/get-all")

    assert len(opened) == 2
    assert opened[0] is not opened[1]
    assert all(session.info.get("closed") for session in opened)
