import pytest

from app import create_app
from extensions import db
from models import AdminRegistration, User
from services.context import PortalContext, Principal
from utils.sentiment import SentimentResult

PASSWORD = "Str0ng!Passw0rd"


class StubClassifier:
    """Records every call; returns ``result`` or raises ``error``."""

    def __init__(self):
        self.result = SentimentResult("Neutral", 0.5, "Balanced remarks.")
        self.error = None
        self.calls = []

    def classify(self, text):
        self.calls.append(text)
        if self.error is not None:
            raise self.error
        return self.result


def make_user(email, full_name="Test Citizen", admin=False, is_guest=False):
    user = User(full_name=full_name, email=email, is_guest=is_guest, is_active=True)
    if email:
        user.set_password(PASSWORD)
    db.session.add(user)
    db.session.flush()
    if admin:
        db.session.add(AdminRegistration(user_id=user.id))
    db.session.commit()
    return user


@pytest.fixture
def classifier():
    return StubClassifier()


@pytest.fixture
def app(classifier):
    app = create_app("testing")
    app.extensions["sentiment_classifier"] = classifier
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def ctx(app, classifier):
    with app.app_context():
        yield PortalContext(session=db.session, classifier=classifier, logger=app.logger, config=app.config)


@pytest.fixture
def citizen(ctx):
    return Principal(uid=make_user("a@example.com", "Citizen A").id)


@pytest.fixture
def other_citizen(ctx):
    return Principal(uid=make_user("b@example.com", "Citizen B").id)


@pytest.fixture
def admin(ctx):
    return Principal(uid=make_user("admin@example.com", "Administrator", admin=True).id)


@pytest.fixture
def complaint_fields():
    def build(**overrides):
        fields = {
            "title": "Pothole on 5th Ave",
            "category": "Roads",
            "description": "Large pothole causing damage",
            "location": "5th Ave & Main St",
            "name": "Citizen A",
            "email": "a@example.com",
            "phone": "5551234567",
            "priority": "High",
        }
        fields.update(overrides)
        return fields

    return build


@pytest.fixture
def accounts(app):
    """Accounts for HTTP tests, created outside any request."""
    with app.app_context():
        return {
            "citizen": make_user("a@example.com", "Citizen A").id,
            "other": make_user("b@example.com", "Citizen B").id,
            "admin": make_user("admin@example.com", "Administrator", admin=True).id,
        }


@pytest.fixture
def login(client):
    def sign_in(email, password=PASSWORD):
        response = client.post("/auth/login", json={"email": email, "password": password})
        assert response.status_code == 200, response.get_json()
        return response.get_json()

    return sign_in
