import io
import unittest

from fastapi.testclient import TestClient

from shotify.app import create_app
from shotify.config import Settings
from shotify.db import InMemoryDbClient
from shotify.dependencies import (
    get_db_client,
    get_image_proxy,
    get_storage_client,
    reset_dependencies,
)
from shotify.models import new_id
from shotify.proxy import ImageProxy
from shotify.storage import InMemoryStorageClient
from shotify.templates import TemplateService


class FakeResponse:
    def __init__(self, body=b"", status_code=200, headers=None):
        self.body = body
        self.status_code = status_code
        self.headers = headers or {}
        self.closed = False

    @property
    def ok(self):
        return 200 <= self.status_code < 300

    def iter_content(self, chunk_size=1):
        for start in range(0, len(self.body), chunk_size):
            yield self.body[start : start + chunk_size]

    def close(self):
        self.closed = True


class FakeSession:
    def __init__(self, response):
        self.response = response
        self.requested = []

    def get(self, url, stream=False, timeout=None):
        self.requested.append(url)
        return self.response


class BackendApiTests(unittest.TestCase):
    def setUp(self):
        reset_dependencies()
        self.db = InMemoryDbClient()
        self.storage = InMemoryStorageClient()
        self.app = create_app(Settings(seed_templates_on_startup=False))
        self.app.dependency_overrides[get_db_client] = lambda: self.db
        self.app.dependency_overrides[get_storage_client] = lambda: self.storage
        self.client = TestClient(self.app)
        TemplateService(self.db).seed_templates()
        self.template = self.db.list_templates("ios")[0]

    def tearDown(self):
        reset_dependencies()

    def _register(self, email="a@x.com", password="pw1", name="Alice"):
        return self.client.post(
            "/api/auth/register",
            json={"email": email, "password": password, "name": name},
        )

    def _auth_headers(self, email="a@x.com"):
        response = self._register(email=email)
        self.assertEqual(response.status_code, 201)
        token = response.json()["data"]["token"]
        return {"Authorization": f"Bearer {token}"}

    def _create_project(self, headers, name="My Post", template_id=None):
        return self.client.post(
            "/api/create-project",
            json={"templateId": template_id or self.template.id, "name": name},
            headers=headers,
        )

    def test_health(self):
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "ok")

    def test_register_then_duplicate_conflicts(self):
        first = self._register()
        self.assertEqual(first.status_code, 201)
        payload = first.json()
        self.assertTrue(payload["success"])
        self.assertTrue(payload["data"]["token"])
        self.assertEqual(payload["data"]["user"]["email"], "a@x.com")
        self.assertNotIn("passwordHash", payload["data"]["user"])

        second = self._register()
        self.assertEqual(second.status_code, 409)
        self.assertFalse(second.json()["success"])
        self.assertEqual(second.json()["error"], "email already registered")

    def test_register_rejects_invalid_body(self):
        response = self.client.post("/api/auth/register", json={"email": "nope"})
        self.assertEqual(response.status_code, 400)
        body = response.json()
        self.assertFalse(body["success"])
        self.assertIsNone(body["data"])

    def test_login(self):
        self._register()
        ok = self.client.post(
            "/api/auth/login", json={"email": "a@x.com", "password": "pw1"}
        )
        self.assertEqual(ok.status_code, 200)
        self.assertTrue(ok.json()["data"]["token"])

        bad = self.client.post(
            "/api/auth/login", json={"email": "a@x.com", "password": "wrong"}
        )
        self.assertEqual(bad.status_code, 401)
        self.assertEqual(bad.json()["error"], "invalid email or password")

    def test_me_requires_token(self):
        response = self.client.get("/api/auth/me")
        self.assertEqual(response.status_code, 401)
        self.assertFalse(response.json()["success"])

        response = self.client.get(
            "/api/auth/me", headers={"Authorization": "Bearer not-a-token"}
        )
        self.assertEqual(response.status_code, 401)

    def test_me_returns_user_and_project_count(self):
        headers = self._auth_headers()
        self._create_project(headers)
        response = self.client.get("/api/auth/me", headers=headers)
        self.assertEqual(response.status_code, 200)
        data = response.json()["data"]
        self.assertEqual(data["email"], "a@x.com")
        self.assertEqual(data["projectCount"], 1)

    def test_get_templates_with_platform_filter(self):
        response = self.client.get("/api/get-templates")
        self.assertEqual(response.status_code, 200)
        all_templates = response.json()["data"]
        self.assertEqual(len(all_templates), self.db.count_templates())

        response = self.client.get("/api/get-templates", params={"platform": "android"})
        android = response.json()["data"]
        self.assertTrue(android)
        self.assertTrue(all(t["platform"] == "android" for t in android))
        self.assertIn("jsonConfig", android[0])

    def test_get_template_by_id(self):
        response = self.client.get(f"/api/get-template-byId/{self.template.id}")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["id"], self.template.id)

        missing = self.client.get(f"/api/get-template-byId/{new_id()}")
        self.assertEqual(missing.status_code, 404)
        self.assertEqual(missing.json()["message"], "Template not found")

    def test_create_project_copies_template_config(self):
        headers = self._auth_headers()
        response = self._create_project(headers)
        self.assertEqual(response.status_code, 201)
        data = response.json()["data"]
        self.assertEqual(data["name"], "My Post")
        self.assertEqual(data["templateId"], self.template.id)
        self.assertEqual(data["template"]["id"], self.template.id)

        config = data["projectConfig"]
        template_config = data["template"]["jsonConfig"]
        self.assertEqual(config["canvas"], template_config["canvas"])
        self.assertEqual(config["layers"], template_config["layers"])
        self.assertEqual(config["exports"], template_config["exports"])
        self.assertEqual(config["images"], [])

    def test_create_project_with_unknown_template_is_not_found(self):
        headers = self._auth_headers()
        response = self._create_project(headers, template_id=new_id())
        self.assertEqual(response.status_code, 404)
        self.assertEqual(self.db.projects, {})

        response = self._create_project(headers, template_id="not-an-id")
        self.assertEqual(response.status_code, 400)

    def test_project_listing_and_retrieval(self):
        headers = self._auth_headers()
        first = self._create_project(headers, name="First").json()["data"]
        second = self._create_project(headers, name="Second").json()["data"]

        listing = self.client.get("/api/get-projects", headers=headers)
        self.assertEqual(listing.status_code, 200)
        ids = {p["id"] for p in listing.json()["data"]}
        self.assertEqual(ids, {first["id"], second["id"]})

        detail = self.client.get(f"/api/get-project-byId/{first['id']}", headers=headers)
        self.assertEqual(detail.status_code, 200)
        self.assertEqual(detail.json()["data"]["template"]["id"], self.template.id)

    def test_project_survives_template_removal(self):
        headers = self._auth_headers()
        project = self._create_project(headers).json()["data"]
        del self.db.templates[self.template.id]

        detail = self.client.get(f"/api/get-project-byId/{project['id']}", headers=headers)
        self.assertEqual(detail.status_code, 200)
        self.assertIsNone(detail.json()["data"]["template"])
        self.assertEqual(detail.json()["data"]["projectConfig"], project["projectConfig"])

    def test_update_project_partial_patch(self):
        headers = self._auth_headers()
        project = self._create_project(headers).json()["data"]

        response = self.client.put(
            f"/api/update-project/{project['id']}",
            json={"name": "", "thumbnail": "https://cdn.test/thumb.png"},
            headers=headers,
        )
        self.assertEqual(response.status_code, 200)
        data = response.json()["data"]
        self.assertEqual(data["name"], "My Post")
        self.assertEqual(data["thumbnail"], "https://cdn.test/thumb.png")
        self.assertEqual(data["projectConfig"], project["projectConfig"])

        new_config = {
            "canvas": {"width": 100, "height": 200},
            "layers": [{"id": "l1", "type": "text"}],
            "images": [{"id": "i1", "url": "https://cdn.test/a.png", "name": "a.png"}],
            "exports": [],
        }
        response = self.client.put(
            f"/api/update-project/{project['id']}",
            json={"name": "Renamed", "projectConfig": new_config},
            headers=headers,
        )
        self.assertEqual(response.status_code, 200)
        data = response.json()["data"]
        self.assertEqual(data["name"], "Renamed")
        self.assertEqual(data["projectConfig"]["canvas"]["width"], 100)
        self.assertEqual(data["projectConfig"]["layers"], [{"id": "l1", "type": "text"}])
        self.assertEqual(data["projectConfig"]["images"][0]["url"], "https://cdn.test/a.png")

        template_config = self.db.get_template(self.template.id).json_config
        self.assertEqual(template_config, self.template.json_config)

    def test_update_stores_only_sent_config_fields(self):
        headers = self._auth_headers()
        project = self._create_project(headers).json()["data"]
        self.assertNotIn("slides", project["projectConfig"])
        self.assertNotIn("slides", project["template"]["jsonConfig"])

        new_config = {
            "canvas": {"width": 100, "height": 200},
            "layers": [{"id": "l1", "type": "text", "link": None}],
            "images": [{"id": "i1", "url": "https://cdn.test/a.png", "name": "a.png"}],
        }
        response = self.client.put(
            f"/api/update-project/{project['id']}",
            json={"projectConfig": new_config},
            headers=headers,
        )
        self.assertEqual(response.status_code, 200)
        self.assertNotIn("slides", response.json()["data"]["projectConfig"])

        stored = self.db.projects[project["id"]].project_config
        self.assertEqual(stored["canvas"], {"width": 100, "height": 200})
        self.assertEqual(stored["images"], new_config["images"])
        self.assertEqual(stored["layers"], new_config["layers"])
        self.assertEqual(stored["exports"], [])
        self.assertNotIn("slides", stored)

    def test_other_users_project_behaves_like_missing(self):
        owner = self._auth_headers("owner@x.com")
        intruder = self._auth_headers("intruder@x.com")
        project = self._create_project(owner).json()["data"]
        missing_id = new_id()

        for project_id in (project["id"], missing_id):
            get_resp = self.client.get(f"/api/get-project-byId/{project_id}", headers=intruder)
            put_resp = self.client.put(
                f"/api/update-project/{project_id}", json={"name": "Hijacked"}, headers=intruder
            )
            del_resp = self.client.delete(f"/api/delete-projects/{project_id}", headers=intruder)
            self.assertEqual(get_resp.status_code, 404)
            self.assertEqual(put_resp.status_code, 404)
            self.assertEqual(del_resp.status_code, 404)
            self.assertEqual(get_resp.json()["message"], "Project not found")

        still_there = self.client.get(f"/api/get-project-byId/{project['id']}", headers=owner)
        self.assertEqual(still_there.json()["data"]["name"], "My Post")

    def test_delete_project(self):
        headers = self._auth_headers()
        project = self._create_project(headers).json()["data"]

        response = self.client.delete(f"/api/delete-projects/{project['id']}", headers=headers)
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()["success"])

        again = self.client.delete(f"/api/delete-projects/{project['id']}", headers=headers)
        self.assertEqual(again.status_code, 404)

    def test_upload_image(self):
        headers = self._auth_headers()
        user_id = self.client.get("/api/auth/me", headers=headers).json()["data"]["id"]
        response = self.client.post(
            "/api/uploads/image",
            files={"image": ("Photo.PNG", io.BytesIO(b"\x89PNG data"), "image/png")},
            headers=headers,
        )
        self.assertEqual(response.status_code, 200)
        data = response.json()["data"]
        self.assertTrue(data["key"].startswith(f"uploads/{user_id}/"))
        self.assertEqual(data["filename"], "Photo.PNG")
        self.assertEqual(data["size"], 9)
        self.assertEqual(self.storage.stored_objects[data["key"]], b"\x89PNG data")
        self.assertEqual(self.storage.content_types[data["key"]], "image/png")
        self.assertIn(data["key"], data["url"])

        signed = self.client.get(
            "/api/uploads/image-url", params={"key": data["key"]}, headers=headers
        )
        self.assertEqual(signed.status_code, 200)
        self.assertIn(data["key"], signed.json()["data"]["url"])

        deleted = self.client.delete(
            "/api/uploads/image", params={"key": data["key"]}, headers=headers
        )
        self.assertEqual(deleted.status_code, 200)
        self.assertNotIn(data["key"], self.storage.stored_objects)

    def test_upload_rejects_bad_type_and_missing_auth(self):
        headers = self._auth_headers()
        response = self.client.post(
            "/api/uploads/image",
            files={"image": ("anim.gif", io.BytesIO(b"GIF89a"), "image/gif")},
            headers=headers,
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["message"], "Upload failed")
        self.assertEqual(self.storage.stored_objects, {})

        response = self.client.post(
            "/api/uploads/image",
            files={"image": ("a.png", io.BytesIO(b"x"), "image/png")},
        )
        self.assertEqual(response.status_code, 401)

        response = self.client.post("/api/uploads/image", headers=headers)
        self.assertEqual(response.status_code, 400)

    def test_cannot_delete_other_users_upload(self):
        headers = self._auth_headers()
        key = f"uploads/{new_id()}/20250101-deadbeef.png"
        self.storage.stored_objects[key] = b"x"
        response = self.client.delete("/api/uploads/image", params={"key": key}, headers=headers)
        self.assertEqual(response.status_code, 404)
        self.assertIn(key, self.storage.stored_objects)

    def test_proxy_image(self):
        upstream = FakeResponse(
            body=b"imagebytes", headers={"Content-Type": "image/jpeg"}
        )
        session = FakeSession(upstream)
        self.app.dependency_overrides[get_image_proxy] = lambda: ImageProxy(session=session)

        response = self.client.get(
            "/api/proxy-image", params={"url": "https://images.test/cat.jpg"}
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.content, b"imagebytes")
        self.assertEqual(response.headers["content-type"], "image/jpeg")
        self.assertEqual(session.requested, ["https://images.test/cat.jpg"])
        self.assertTrue(upstream.closed)

    def test_proxy_image_validation(self):
        missing = self.client.get("/api/proxy-image")
        self.assertEqual(missing.status_code, 400)

        bad_scheme = self.client.get("/api/proxy-image", params={"url": "file:///etc/passwd"})
        self.assertEqual(bad_scheme.status_code, 400)
        self.assertFalse(bad_scheme.json()["success"])


class LifespanTests(unittest.TestCase):
    def setUp(self):
        reset_dependencies()

    def tearDown(self):
        reset_dependencies()

    def test_startup_seeds_templates_once(self):
        db = InMemoryDbClient()
        app = create_app(Settings(seed_templates_on_startup=True))
        app.dependency_overrides[get_db_client] = lambda: db

        with TestClient(app) as client:
            count = len(client.get("/api/get-templates").json()["data"])
        self.assertGreater(count, 0)

        with TestClient(app):
            pass
        self.assertEqual(db.count_templates(), count)


if __name__ == "__main__":
    unittest.main()
