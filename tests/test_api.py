"""
Tests for the HTTP layer.
"""
import pytest
from fastapi.testclient import TestClient

from api import ErrorResponse
from database import get_db
from main import app


@pytest.fixture
def client(db, site):
    """Test client whose requests use the seeded test session."""
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _call(client, wsfunction, requester_id, params):
    return client.post(f"/webservice/{wsfunction}", json={"requester_id": requester_id, "params": params})


class TestWebServiceEndpoint:
    """Tests for POST /webservice/{wsfunction}."""

    def test_health(self, client):
        """Test the health endpoint."""
        assert client.get("/health").json() == {"status": "healthy"}

    def test_list_functions(self, client):
        """Test that every function is advertised."""
        response = client.get("/webservice/functions")
        assert response.status_code == 200
        names = [f["name"] for f in response.json()]
        assert "local_custommm_get_grades" in names
        assert "local_custommm_get_forum_posts" in names

    def test_unknown_function(self, client):
        """Test that an unknown function name is a 404."""
        response = _call(client, "local_custommm_drop_everything", 1, {})
        assert response.status_code == 404
        assert response.json()["detail"]["errorcode"] == "invalidfunction"

    def test_get_grades(self, client, site):
        """Test a successful grade read over HTTP."""
        response = _call(client, "local_custommm_get_grades", site["student1"], {
            "courseid": site["course"], "component": "mod_assign",
            "cmid": site["assign_cm"], "userids": [site["student1"]],
        })
        assert response.status_code == 200
        body = response.json()
        assert body["items"][0]["grades"][0]["grade"] == 72.5
        assert body["outcomes"][0]["grades"][0]["str_grade"] == "Competent"

    def test_access_denied(self, client, site):
        """Test that a denied call is a 403 with its error code."""
        response = _call(client, "local_custommm_get_grades", site["student1"], {
            "courseid": site["course"], "component": "mod_assign",
            "cmid": site["assign_cm"], "userids": [site["student2"]],
        })
        assert response.status_code == 403
        detail = response.json()["detail"]
        assert detail["exception"] == "AccessDenied"
        assert detail["errorcode"] == "nopermissiontoviewgrades"

    def test_invalid_parameters(self, client, site):
        """Test that malformed params are a 400."""
        response = _call(client, "local_custommm_get_forum_posts", site["student1"], {"discussionid": "abc"})
        assert response.status_code == 400
        assert response.json()["detail"]["errorcode"] == "invalidparameter"

    def test_not_found(self, client, site):
        """Test that an unknown record is a 404."""
        response = _call(client, "local_custommm_get_forum_posts", site["student1"], {"discussionid": 9999})
        assert response.status_code == 404
        assert response.json()["detail"]["errorcode"] == "invaliddiscussionid"

    def test_update_grade(self, client, site):
        """Test a grade update over HTTP."""
        response = _call(client, "local_custommm_update_grade", site["teacher"], {
            "source": "api-test", "courseid": site["course"], "component": "mod_assign",
            "cmid": site["assign_cm"], "itemnumber": 0,
            "grades": [{"studentid": site["student2"], "grade": 61.0}],
        })
        assert response.status_code == 200
        assert response.json() == {"result": 0}

    def test_discussions_shape(self, client, site):
        """Test that discussions carry exactly the declared fields."""
        response = _call(client, "local_custommm_get_forum_discussions", site["student2"], {
            "forumids": [site["general_forum"]],
        })
        assert response.status_code == 200
        discussion = response.json()[0]
        assert discussion["numunread"] is None
        assert "firstuserfullname" in discussion
        assert "lastuseremail" in discussion

    def test_error_body_matches_schema(self, client, site):
        """Test that error bodies follow the documented error response."""
        response = _call(client, "local_custommm_get_forum_posts", site["student1"], {"discussionid": 9999})
        error = ErrorResponse.model_validate(response.json())
        assert error.detail.exception == "NotFoundError"

    def test_error_responses_documented(self, client):
        """Test that the error responses appear in the OpenAPI document."""
        operation = client.get("/openapi.json").json()["paths"]["/webservice/{wsfunction}"]["post"]
        assert {"400", "403", "404"} <= set(operation["responses"])
