import asyncio

from canteen.models import ROLE_STAFF, ROLE_STUDENT


class FakeConnection:
    """Stands in for a WebSocket: records everything sent to it."""

    def __init__(self, fail: bool = False):
        self.sent = []
        self.fail = fail

    async def send_json(self, data):
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(data)

    def events(self, name=None):
        return [m for m in self.sent if name is None or m["event"] == name]


class StalledConnection(FakeConnection):
    """A socket whose peer stopped reading: sends never complete."""

    async def send_json(self, data):
        await asyncio.sleep(3600)


def run(coro):
    return asyncio.run(coro)


def register(client, username, role=ROLE_STUDENT, password="secret"):
    response = client.post("/register", json={"username": username, "password": password, "role": role})
    assert response.status_code == 201, response.text
    return response.json()


def login_staff(client):
    response = client.post("/login", json={"username": "staff", "password": "staff123", "role": ROLE_STAFF})
    assert response.status_code == 200, response.text
    return response.json()


def menu_ids(client):
    return {item["name"]: item["id"] for item in client.get("/api/menu").json()}
