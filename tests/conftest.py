import pytest
from fastapi.testclient import TestClient

from canteen import store
from canteen.broadcast import ConnectionHub
from canteen.database import create_db_engine, create_session_factory, init_db
from canteen.main import create_app
from canteen.models import ROLE_STUDENT
from canteen.services import OrderService
from canteen.utils import hash_password


@pytest.fixture
def session_factory(tmp_path):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'orders.db'}")
    init_db(engine)
    yield create_session_factory(engine)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    with session_factory() as session:
        yield session


@pytest.fixture
def student(db):
    user = store.create_user(db, "asha", hash_password("pw"), ROLE_STUDENT)
    db.commit()
    return user


@pytest.fixture
def hub():
    return ConnectionHub()


@pytest.fixture
def service(hub):
    return OrderService(hub)


@pytest.fixture
def app(tmp_path):
    return create_app(
        database_url=f"sqlite:///{tmp_path / 'app.db'}",
        secret_key="test-secret",
        enable_scheduler=False,
        seed=True,
    )


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client
