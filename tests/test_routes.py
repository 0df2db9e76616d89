import pytest
from fastapi.testclient import TestClient

from examprep.app import app
from examprep.database import get_db
from examprep.models.db.user import UserRole
from examprep.services import auth_service

FILL_IN_TEST = {
    "name": "Arithmetic",
    "duration_minutes": 30,
    "sections": [
        {
            "name": "Warm-up",
            "questions": [
                {
                    "type": "fill_in",
                    "text": "2 + 3 = ?",
                    "correct_answer": "5",
                    "solution_text": "Add them.",
                    "points": 5,
                },
                {
                    "type": "mcq",
                    "text": "Pick B.",
                    "points": 5,
                    "options": [
                        {"text": "A", "is_correct": False},
                        {"text": "B", "is_correct": True},
                    ],
                },
            ],
        }
    ],
}


@pytest.fixture
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def login(client, session_factory):
    """Create a user with the given role and return auth headers for it."""

    def _login(username: str, role: UserRole = UserRole.USER) -> dict[str, str]:
        db = session_factory()
        try:
            auth_service.create_user(db, username, f"{username}@example.com", "secret123", role)
        finally:
            db.close()
        response = client.post(
            "/api/auth/login", json={"username": username, "password": "secret123"}
        )
        assert response.status_code == 200
        return {"Authorization": f"Bearer {response.json()['access_token']}"}

    return _login


@pytest.fixture
def teacher_headers(login) -> dict[str, str]:
    return login("teacher", UserRole.TEACHER)


@pytest.fixture
def student_headers(login) -> dict[str, str]:
    return login("student")


@pytest.fixture
def published_test(client, teacher_headers) -> dict:
    response = client.post("/api/tests", json=FILL_IN_TEST, headers=teacher_headers)
    assert response.status_code == 201
    return response.json()


def _start(client, headers, test_id: str):
    return client.post("/api/attempts", json={"testId": test_id}, headers=headers)


def test_health(client) -> None:
    assert client.get("/api/health").json() == {"status": "ok"}


def test_register_login_and_me(client) -> None:
    response = client.post(
        "/api/auth/register",
        json={"username": "newbie", "email": "newbie@example.com", "password": "secret123"},
    )
    assert response.status_code == 201
    assert response.json()["role"] == "user"

    duplicate = client.post(
        "/api/auth/register",
        json={"username": "newbie", "email": "other@example.com", "password": "secret123"},
    )
    assert duplicate.status_code == 400

    token = client.post(
        "/api/auth/login", json={"username": "newbie@example.com", "password": "secret123"}
    ).json()["access_token"]
    headers = {"Authorization": f"Bearer {token}"}
    assert client.get("/api/auth/me", headers=headers).json()["username"] == "newbie"

    client.post("/api/auth/logout", headers=headers)
    assert client.get("/api/auth/me", headers=headers).status_code == 401


def test_login_with_wrong_password(client, login) -> None:
    login("student")
    response = client.post("/api/auth/login", json={"username": "student", "password": "nope"})
    assert response.status_code == 401


def test_attempts_require_authentication(client) -> None:
    assert client.post("/api/attempts", json={"testId": "abc"}).status_code == 401


def test_only_elevated_roles_import_tests(client, student_headers) -> None:
    response = client.post("/api/tests", json=FILL_IN_TEST, headers=student_headers)
    assert response.status_code == 403


def test_student_view_hides_answer_key(client, student_headers, published_test) -> None:
    listed = client.get("/api/tests", headers=student_headers).json()
    assert [summary["id"] for summary in listed] == [published_test["id"]]
    assert listed[0]["question_count"] == 2

    test = client.get(f"/api/tests/{published_test['id']}", headers=student_headers).json()
    fill_in, mcq = test["sections"][0]["questions"]
    assert "correct_answer" not in fill_in
    assert "solution_text" not in fill_in
    assert all("is_correct" not in option for option in mcq["options"])


def test_inactive_test_is_hidden_from_students(client, teacher_headers, student_headers) -> None:
    created = client.post(
        "/api/tests", json={**FILL_IN_TEST, "is_active": False}, headers=teacher_headers
    ).json()

    assert client.get("/api/tests", headers=student_headers).json() == []
    assert client.get(f"/api/tests/{created['id']}", headers=student_headers).status_code == 403
    assert _start(client, student_headers, created["id"]).status_code == 403
    assert client.get(f"/api/tests/{created['id']}", headers=teacher_headers).status_code == 200


def test_start_unknown_test_is_404(client, student_headers) -> None:
    response = _start(client, student_headers, "missing")
    assert response.status_code == 404
    assert response.json() == {"detail": "Test not found"}


def test_full_attempt_flow(client, student_headers, published_test) -> None:
    fill_in, mcq = published_test["sections"][0]["questions"]
    wrong_option, correct_option = (option["id"] for option in mcq["options"])

    started = _start(client, student_headers, published_test["id"])
    assert started.status_code == 201
    attempt = started.json()
    assert attempt["status"] == "in_progress"
    assert attempt["durationMinutes"] == 30
    assert attempt["score"] is None

    conflict = _start(client, student_headers, published_test["id"])
    assert conflict.status_code == 409
    assert conflict.json()["attemptId"] == attempt["id"]

    answer = client.post(
        "/api/answers",
        json={"attemptId": attempt["id"], "questionId": fill_in["id"], "answer": "5"},
        headers=student_headers,
    )
    assert answer.status_code == 201
    assert answer.json()["isCorrect"] is None

    pending = client.get(f"/api/attempts/{attempt['id']}/results", headers=student_headers).json()
    assert pending["answers"][0]["submittedAnswer"] == "5"
    assert pending["answers"][0]["question"]["correctAnswer"] is None
    assert pending["answers"][1]["question"]["options"][1]["isCorrect"] is None

    client.post(
        "/api/answers",
        json={"attemptId": attempt["id"], "questionId": mcq["id"], "answer": str(wrong_option)},
        headers=student_headers,
    )

    submitted = client.post(f"/api/attempts/{attempt['id']}/submit", headers=student_headers)
    assert submitted.status_code == 200
    body = submitted.json()
    assert body["scorePercentage"] == 50.0
    assert body["pointsAwarded"] == 5.0
    assert body["maxPoints"] == 10.0
    assert [grade["isCorrect"] for grade in body["breakdown"]] == [True, False]
    assert body["attempt"]["status"] == "completed"

    again = client.post(f"/api/attempts/{attempt['id']}/submit", headers=student_headers)
    assert again.json() == body

    late = client.post(
        "/api/answers",
        json={"attemptId": attempt["id"], "questionId": mcq["id"], "answer": str(correct_option)},
        headers=student_headers,
    )
    assert late.status_code == 400

    results = client.get(f"/api/attempts/{attempt['id']}/results", headers=student_headers).json()
    assert results["test"]["name"] == "Arithmetic"
    assert results["answers"][0]["isCorrect"] is True
    assert results["answers"][0]["question"]["correctAnswer"] == "5"
    assert results["answers"][0]["question"]["solutionText"] == "Add them."
    assert results["answers"][1]["question"]["options"][1]["isCorrect"] is True

    mine = client.get("/api/user/attempts", headers=student_headers).json()
    assert [(item["attempt"]["id"], item["testName"]) for item in mine] == [
        (attempt["id"], "Arithmetic")
    ]

    notifications = client.get("/api/notifications", headers=student_headers).json()
    assert len(notifications) == 1
    assert notifications[0]["title"] == "Test Completed"
    read = client.put(f"/api/notifications/{notifications[0]['id']}/read", headers=student_headers)
    assert read.status_code == 204
    assert client.get("/api/notifications", headers=student_headers).json()[0]["is_read"] is True


def test_answer_for_foreign_question_is_404(client, student_headers, teacher_headers, published_test) -> None:
    other = client.post(
        "/api/tests", json={**FILL_IN_TEST, "name": "Other"}, headers=teacher_headers
    ).json()
    attempt = _start(client, student_headers, published_test["id"]).json()

    response = client.post(
        "/api/answers",
        json={
            "attemptId": attempt["id"],
            "questionId": other["sections"][0]["questions"][0]["id"],
            "answer": "5",
        },
        headers=student_headers,
    )
    assert response.status_code == 404


def test_other_students_are_forbidden(client, login, student_headers, teacher_headers, published_test) -> None:
    intruder = login("intruder")
    attempt = _start(client, student_headers, published_test["id"]).json()
    question_id = published_test["sections"][0]["questions"][0]["id"]

    assert client.get(f"/api/attempts/{attempt['id']}/results", headers=intruder).status_code == 403
    assert client.post(f"/api/attempts/{attempt['id']}/submit", headers=intruder).status_code == 403
    answer = client.post(
        "/api/answers",
        json={"attemptId": attempt["id"], "questionId": question_id, "answer": "5"},
        headers=intruder,
    )
    assert answer.status_code == 403

    teacher_view = client.get(f"/api/attempts/{attempt['id']}/results", headers=teacher_headers)
    assert teacher_view.status_code == 200


def test_unknown_attempt_is_404(client, student_headers) -> None:
    assert client.post("/api/attempts/missing/submit", headers=student_headers).status_code == 404
    assert client.get("/api/attempts/missing/results", headers=student_headers).status_code == 404


def test_expire_before_deadline(client, student_headers, published_test) -> None:
    attempt = _start(client, student_headers, published_test["id"]).json()

    response = client.post(f"/api/attempts/{attempt['id']}/expire", headers=student_headers)

    assert response.status_code == 200
    assert response.json()["expired"] is False
    assert response.json()["attempt"]["status"] == "in_progress"


def test_abandon_is_for_teachers(client, student_headers, teacher_headers, published_test) -> None:
    attempt = _start(client, student_headers, published_test["id"]).json()
    url = f"/api/attempts/{attempt['id']}/abandon"

    assert client.post(url, headers=student_headers).status_code == 403
    abandoned = client.post(url, headers=teacher_headers)
    assert abandoned.status_code == 200
    assert abandoned.json()["status"] == "abandoned"
    assert client.post(url, headers=teacher_headers).status_code == 400

    restarted = _start(client, student_headers, published_test["id"])
    assert restarted.status_code == 201
