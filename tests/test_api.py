import uuid

API = "/api/v1"


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "healthy", "version": "1.0.0"}

def test_mock_login_issues_usable_token(client, build):
    user = build.user()
    r = client.post(f"{API}/auth/mock-login", json={"user_id": str(user.id), "role": "user"})
    assert r.status_code == 200
    token = r.json()["access_token"]
    r = client.get(f"{API}/enrollment", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 200
    assert r.json() == {"success": True, "data": [], "message": "Enrollments retrieved successfully"}

def test_missing_and_bad_tokens(client):
    r = client.get(f"{API}/enrollment")
    assert r.status_code == 401
    assert r.json() == {"success": False, "error": "Unauthorized"}
    r = client.get(f"{API}/enrollment", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401
    assert r.json()["error"] == "Invalid or expired token"

def test_admin_routes_reject_learners(client, learner_headers, build):
    module = build.module(build.course())
    r = client.post(f"{API}/quiz", headers=learner_headers, json={"moduleId": str(module.id), "title": "Q", "quizOrder": 1})
    assert r.status_code == 403
    assert r.json() == {"success": False, "error": "Insufficient role"}

def test_validation_errors_use_envelope(client, admin_headers):
    r = client.post(f"{API}/quiz", headers=admin_headers, json={"title": "No module"})
    assert r.status_code == 400
    body = r.json()
    assert body["success"] is False
    assert "moduleId" in body["error"] or "module_id" in body["error"]

def test_not_found_uses_envelope(client, admin_headers):
    r = client.get(f"{API}/quiz/admin/{uuid.uuid4()}", headers=admin_headers)
    assert r.status_code == 404
    assert r.json() == {"success": False, "error": "Quiz not found"}

def test_author_and_take_quiz(client, build, admin_headers, learner_headers):
    module = build.module(build.course())
    r = client.post(f"{API}/quiz", headers=admin_headers, json={"moduleId": str(module.id), "title": "Week 1", "quizOrder": 1})
    assert r.status_code == 201
    quiz_id = r.json()["data"]["id"]

    for order, correct in ((1, "Paris"), (2, "Rome")):
        r = client.post(f"{API}/quiz/question", headers=admin_headers, json={
            "quizId": quiz_id, "questionText": f"Capital #{order}?", "questionOrder": order,
            "options": [{"optionText": correct, "isCorrect": True}, {"optionText": "Berlin", "isCorrect": False}],
        })
        assert r.status_code == 201

    r = client.get(f"{API}/quiz/{quiz_id}", headers=learner_headers)
    assert r.status_code == 200
    questions = r.json()["data"]["questions"]
    assert all("isCorrect" not in o for q in questions for o in q["options"])

    def pick(question, text):
        option = next(o for o in question["options"] if o["optionText"] == text)
        return {"questionId": question["id"], "selectedOptionId": option["id"]}

    answers = [pick(questions[0], "Paris"), pick(questions[1], "Berlin")]
    r = client.post(f"{API}/quiz/submit", headers=learner_headers, json={"quizId": quiz_id, "answers": answers})
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["score"] == 50.0
    assert data["attemptNumber"] == 1
    assert data["totalQuestions"] == 2 and data["correctAnswers"] == 1

    r = client.get(f"{API}/quiz/{quiz_id}/attempts", headers=learner_headers)
    assert [a["attemptNumber"] for a in r.json()["data"]] == [1]

    r = client.get(f"{API}/quiz/admin", params={"moduleId": str(module.id)}, headers=admin_headers)
    assert len(r.json()["data"]) == 1

def test_incomplete_submission_is_rejected(client, build, learner_headers):
    quiz = build.quiz(build.module(build.course()))
    right, _ = build.options(build.question(quiz, order=1))
    build.question(quiz, order=2)
    r = client.post(f"{API}/quiz/submit", headers=learner_headers, json={
        "quizId": str(quiz.id),
        "answers": [{"questionId": str(right.question_id), "selectedOptionId": str(right.id)}],
    })
    assert r.status_code == 400
    assert r.json() == {"success": False, "error": "All questions must be answered"}

def test_gated_quiz_returns_403(client, build, learner_headers):
    module = build.module(build.course())
    lesson = build.lesson(module)
    quiz = build.quiz(module, unlock_after=lesson)
    r = client.get(f"{API}/quiz/{quiz.id}", headers=learner_headers)
    assert r.status_code == 403
    assert r.json()["error"] == "Required lesson not completed"

    assert client.post(f"{API}/lesson/{lesson.id}/watched", headers=learner_headers, json={"lastWatchedSeconds": 5}).status_code == 200
    assert client.get(f"{API}/quiz/{quiz.id}", headers=learner_headers).status_code == 200

def test_delete_course_over_http(client, build, storage, admin_headers):
    course = build.course()
    build.lesson(build.module(course), files=[build.file()])
    r = client.delete(f"{API}/course/{course.id}", headers=admin_headers)
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True and body["message"] == "Course deleted successfully"
    assert body["data"]["filesReclaimed"] == 1

    assert client.get(f"{API}/course/admin/{course.id}", headers=admin_headers).status_code == 404

def test_blob_failure_is_500(client, build, storage, admin_headers):
    course = build.course()
    build.lesson(build.module(course), files=[build.file()])
    storage.fail_deletes = True
    r = client.delete(f"{API}/course/{course.id}", headers=admin_headers)
    assert r.status_code == 500
    assert r.json() == {"success": False, "error": "Failed to delete lesson file from cloud storage"}

def test_course_catalogue_is_public(client, build):
    build.course(title="Open Course")
    build.course(title="Hidden", status="draft")
    r = client.get(f"{API}/course")
    assert r.status_code == 200
    assert [c["title"] for c in r.json()["data"]["courses"]] == ["Open Course"]

def test_duplicate_enrollment_is_409(client, build, learner_headers):
    course = build.course()
    assert client.post(f"{API}/enrollment", headers=learner_headers, json={"courseId": str(course.id)}).status_code == 201
    r = client.post(f"{API}/enrollment", headers=learner_headers, json={"courseId": str(course.id)})
    assert r.status_code == 409
    assert r.json()["error"] == "Already enrolled in this course"

def test_upload(client, learner_headers, storage):
    r = client.post(f"{API}/upload", headers=learner_headers,
                    files={"file": ("slides.pdf", b"%PDF-1.7 data", "application/pdf")}, data={"documentType": "lesson"})
    assert r.status_code == 201
    data = r.json()["data"]
    assert data["originalFilename"] == "slides.pdf"
    assert data["key"] in storage.blobs
    r = client.get(f"{API}/upload/{data['id']}", headers=learner_headers)
    assert r.json()["data"]["url"].startswith("https://blobs.test/")

def test_user_listing_is_admin_only(client, admin_headers, learner_headers):
    assert client.get(f"{API}/user", headers=learner_headers).status_code == 403
    r = client.get(f"{API}/user", headers=admin_headers, params={"role": "admin"})
    assert r.status_code == 200
    assert r.json()["data"]["pagination"]["total"] == 1

def test_null_required_fields_are_rejected(client, build, db, storage, admin, admin_headers):
    from datetime import datetime, timezone
    from learnhub.services.webinars import create_webinar
    course = build.course(level="advanced")
    r = client.put(f"{API}/course/{course.id}", headers=admin_headers, json={"level": None})
    assert r.status_code == 400
    assert r.json() == {"success": False, "error": "level cannot be null"}
    assert client.get(f"{API}/course/admin/{course.id}", headers=admin_headers).json()["data"]["level"] == "advanced"

    webinar = create_webinar(db, storage, admin, title="Office hours", scheduled_at=datetime(2030, 1, 1, tzinfo=timezone.utc),
                             duration=30, instructor_ids=[admin.user_id], is_free=True)
    r = client.put(f"{API}/webinar/{webinar['id']}", headers=admin_headers, json={"duration": None})
    assert r.status_code == 400
    assert r.json() == {"success": False, "error": "duration cannot be null"}
