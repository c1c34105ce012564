import pytest

from tests.conftest import PASSWORD
from utils.sentiment import SentimentClassifierError, SentimentResult

COMPLAINT = {
    "title": "Pothole on 5th Ave",
    "category": "Roads",
    "description": "Large pothole causing damage",
    "location": "5th Ave & Main St",
    "name": "Citizen A",
    "email": "a@example.com",
    "phone": "5551234567",
    "priority": "High",
}
COMMENTS = "The pothole took three weeks to fix and traffic was bad."


def file_complaint(client, **overrides):
    response = client.post("/complaints/", json={**COMPLAINT, **overrides})
    assert response.status_code == 201, response.get_json()
    return response.get_json()


def switch_user(client, login, email):
    client.post("/auth/logout")
    return login(email)


def test_index_and_security_headers(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.get_json()["status"] == "ok"
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["Cache-Control"] == "no-store"


def test_anonymous_requests_need_sign_in(client):
    for method, path in [
        ("get", "/complaints/"),
        ("post", "/complaints/"),
        ("get", "/dashboard"),
        ("get", "/auth/me"),
        ("post", "/auth/logout"),
        ("post", "/feedback/analyze"),
    ]:
        response = getattr(client, method)(path, json={})
        assert response.status_code == 401, path
        assert response.get_json()["error"] == "authentication_required"


def test_register_login_and_me(client):
    response = client.post(
        "/auth/register",
        json={
            "full_name": "Priya Citizen",
            "email": "Priya@Example.com",
            "password": PASSWORD,
            "confirm_password": PASSWORD,
        },
    )
    assert response.status_code == 201
    assert response.get_json()["email"] == "priya@example.com"

    me = client.get("/auth/me").get_json()
    assert (me["full_name"], me["role"], me["is_guest"]) == ("Priya Citizen", "citizen", False)

    duplicate = client.post(
        "/auth/register",
        json={"full_name": "Someone Else", "email": "priya@example.com", "password": PASSWORD, "confirm_password": PASSWORD},
    )
    assert duplicate.status_code == 422
    assert "email" in duplicate.get_json()["fields"]


def test_weak_password_is_rejected(client):
    response = client.post(
        "/auth/register",
        json={"full_name": "Weak Pass", "email": "weak@example.com", "password": "alllowercase1!", "confirm_password": "alllowercase1!"},
    )
    assert response.status_code == 422
    assert "password" in response.get_json()["fields"]


def test_bad_credentials(client, accounts):
    response = client.post("/auth/login", json={"email": "a@example.com", "password": "Wr0ng!Password"})
    assert response.status_code == 401


def test_login_reports_administrator_role(accounts, login):
    assert login("admin@example.com")["role"] == "administrator"


def test_guest_session_can_file_but_is_never_administrator(client):
    response = client.post("/auth/guest")
    assert response.status_code == 201
    assert response.get_json()["is_guest"] is True

    again = client.post("/auth/guest")
    assert again.status_code == 200
    assert again.get_json()["id"] == response.get_json()["id"]

    complaint = file_complaint(client)
    assert complaint["status"] == "Pending"
    assert client.get("/auth/me").get_json()["role"] == "citizen"


def test_complaint_lifecycle_over_http(client, accounts, login):
    login("a@example.com")
    complaint = file_complaint(client)
    assert complaint["citizen_id"] == accounts["citizen"]
    assert complaint["revision"] == 1

    denied = client.post(f"/complaints/{complaint['id']}/status", json={"status": "Resolved"})
    assert denied.status_code == 403

    switch_user(client, login, "admin@example.com")
    moved = client.post(f"/complaints/{complaint['id']}/status", json={"status": "Resolved", "revision": 1})
    assert moved.status_code == 200
    assert (moved.get_json()["status"], moved.get_json()["revision"]) == ("Resolved", 2)
    assert moved.get_json()["is_terminal"] is True

    stale = client.post(f"/complaints/{complaint['id']}/status", json={"status": "Pending", "revision": 1})
    assert stale.status_code == 409
    assert stale.get_json()["error"] == "stale_revision"

    reopened = client.post(f"/complaints/{complaint['id']}/status", data={"status": "Pending"})
    assert reopened.get_json()["status"] == "Pending"


def test_stranger_cannot_read_or_delete(client, accounts, login):
    login("a@example.com")
    complaint = file_complaint(client)

    switch_user(client, login, "b@example.com")
    assert client.get(f"/complaints/{complaint['id']}").status_code == 403
    assert client.delete(f"/complaints/{complaint['id']}").status_code == 403
    assert client.get("/complaints/missing-id").status_code == 404

    switch_user(client, login, "a@example.com")
    assert client.delete(f"/complaints/{complaint['id']}").status_code == 204
    assert client.get(f"/complaints/{complaint['id']}").status_code == 404


def test_validation_errors_list_fields(client, accounts, login):
    login("a@example.com")
    response = client.post("/complaints/", json={**COMPLAINT, "phone": "12345", "category": "Weather"})
    assert response.status_code == 422
    assert set(response.get_json()["fields"]) == {"phone", "category"}


def test_listing_pagination_and_search(app, client, accounts, login):
    app.config["COMPLAINTS_PER_PAGE"] = 5
    login("a@example.com")
    for number in range(6):
        file_complaint(client, title=f"Streetlight out #{number}", category="Utilities")
    file_complaint(client, title="Overflowing bins at the park", category="Parks")

    first = client.get("/complaints/").get_json()
    assert len(first["complaints"]) == 5
    assert first["pagination"]["pages"] == 2

    second = client.get("/complaints/?page=2").get_json()
    assert len(second["complaints"]) == 2
    assert second["pagination"]["has_prev"] is True

    found = client.get("/complaints/?query=streetlight").get_json()
    assert found["pagination"]["total"] == 6

    switch_user(client, login, "b@example.com")
    assert client.get("/complaints/?query=streetlight").get_json()["pagination"]["total"] == 0

    bad = client.get("/complaints/?sort=random")
    assert bad.status_code == 422


def test_track_by_email(client, accounts, login):
    login("a@example.com")
    file_complaint(client)
    response = client.get("/complaints/track?email=A@example.com")
    assert response.status_code == 200
    assert len(response.get_json()["complaints"]) == 1
    assert client.get("/complaints/track?email=nope").status_code == 422


def test_feedback_flow_over_http(client, classifier, accounts, login):
    classifier.result = SentimentResult("Negative", 0.82, "Slow repair.")
    login("a@example.com")
    complaint = file_complaint(client)

    early = client.post("/feedback/", json={"complaint_id": complaint["id"], "rating": 2, "comments": COMMENTS})
    assert early.status_code == 422

    switch_user(client, login, "admin@example.com")
    client.post(f"/complaints/{complaint['id']}/status", json={"status": "Resolved"})

    switch_user(client, login, "a@example.com")
    created = client.post("/feedback/", json={"complaint_id": complaint["id"], "rating": 2, "comments": COMMENTS})
    assert created.status_code == 201
    body = created.get_json()
    assert (body["sentiment"], body["sentiment_confidence"], body["rating"]) == ("Negative", 0.82, 2)

    listed = client.get(f"/feedback/?complaint_id={complaint['id']}").get_json()
    assert [f["id"] for f in listed["feedback"]] == [body["id"]]

    assert client.get("/feedback/summary").status_code == 403

    switch_user(client, login, "admin@example.com")
    summary = client.get("/feedback/summary").get_json()
    assert summary["by_sentiment"]["Negative"] == 1


def test_feedback_classifier_failure_is_502(client, classifier, accounts, login):
    login("admin@example.com")
    complaint = file_complaint(client)
    client.post(f"/complaints/{complaint['id']}/status", json={"status": "Resolved"})
    classifier.error = SentimentClassifierError("timed out")

    response = client.post("/feedback/", json={"complaint_id": complaint["id"], "rating": 3, "comments": COMMENTS})
    assert response.status_code == 502
    assert response.get_json()["error"] == "sentiment_analysis_failed"
    assert client.get("/feedback/").get_json()["pagination"]["total"] == 0


@pytest.mark.parametrize("rating", [{"x": 1}, [[3]]])
def test_non_scalar_rating_is_a_field_error(client, classifier, accounts, login, rating):
    login("admin@example.com")
    complaint = file_complaint(client)
    client.post(f"/complaints/{complaint['id']}/status", json={"status": "Resolved"})

    response = client.post("/feedback/", json={"complaint_id": complaint["id"], "rating": rating, "comments": COMMENTS})
    assert response.status_code == 422
    assert "rating" in response.get_json()["fields"]
    assert classifier.calls == []


def test_analyze_endpoint(client, classifier, accounts, login):
    login("a@example.com")
    classifier.result = SentimentResult("Positive", 0.93, "Grateful tone.")
    response = client.post("/feedback/analyze", json={"feedback_text": "Thank you for fixing our road so fast!"})
    assert response.status_code == 200
    assert response.get_json()["analysis"]["sentiment"] == "Positive"


@pytest.mark.parametrize("email,role,has_feedback", [("a@example.com", "citizen", False), ("admin@example.com", "administrator", True)])
def test_dashboard(client, accounts, login, email, role, has_feedback):
    login(email)
    file_complaint(client)
    dashboard = client.get("/dashboard").get_json()
    assert dashboard["role"] == role
    assert dashboard["stats"]["by_status"]["Pending"] == 1
    assert len(dashboard["recent_complaints"]) == 1
    assert ("feedback" in dashboard) is has_feedback


def test_forgot_password_never_reveals_accounts(client, accounts, monkeypatch):
    sent = []
    monkeypatch.setattr("routes.auth.send_password_reset_email", lambda *args: sent.append(args))

    known = client.post("/auth/forgot-password", json={"email": "a@example.com"})
    unknown = client.post("/auth/forgot-password", json={"email": "nobody@example.com"})

    assert known.status_code == unknown.status_code == 202
    assert known.get_json() == unknown.get_json()
    assert len(sent) == 1
    assert sent[0][0] == "a@example.com"


def test_password_reset_round_trip(client, accounts, login, monkeypatch):
    links = []
    monkeypatch.setattr("routes.auth.send_password_reset_email", lambda recipient, name, link, expires: links.append(link))
    client.post("/auth/forgot-password", json={"email": "a@example.com"})
    token = links[0].rsplit("/", 1)[-1]

    new_password = "N3w!Passw0rdXyz"
    response = client.post(f"/auth/reset-password/{token}", json={"password": new_password, "confirm_password": new_password})
    assert response.status_code == 200

    reused = client.post(f"/auth/reset-password/{token}", json={"password": new_password, "confirm_password": new_password})
    assert reused.status_code == 422

    assert login("a@example.com", new_password)["email"] == "a@example.com"


def test_unknown_route_is_json_404(client):
    response = client.get("/nowhere")
    assert response.status_code == 404
    assert response.get_json()["error"] == "not_found"
