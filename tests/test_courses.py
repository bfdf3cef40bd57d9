"""Course CRUD, enrollment and progress reset."""
from app.courses import database as course_db
from tests.conftest import auth_headers, run


class TestCourseCrud:
    def test_create_assigns_sequential_ids(self, make_course):
        first = make_course()
        second = make_course(title="Data Structures")
        assert first["id"] == 1
        assert second["id"] == 2
        assert first["created_by"] == "admin-1"
        assert first["enrollment_count"] == 0
        assert first["completion_rate"] == 0
        assert first["full_title"] == "Intro to Algorithms - Algorithms"

    def test_title_is_trimmed_and_required(self, client, admin_headers, make_course):
        assert make_course(title="  Graphs  ", category=None)["full_title"] == "Graphs"
        resp = client.post("/api/courses", json={"title": "   "}, headers=admin_headers)
        assert resp.status_code == 422

    def test_validation_rules(self, client, admin_headers):
        bad_payloads = [
            {"title": "A", "difficulty": "expert"},
            {"title": "A", "rating": 6},
            {"title": "A", "rating": -1},
            {"title": "A", "completion_rate": 101},
            {"title": "A", "estimated_hours": -2},
        ]
        for payload in bad_payloads:
            resp = client.post("/api/courses", json=payload, headers=admin_headers)
            assert resp.status_code == 422, payload

    def test_listing_hides_private_courses_from_users(self, client, make_course, user_headers, admin_headers):
        make_course(title="Public", is_public=True)
        make_course(title="Private")

        public_titles = [c["title"] for c in client.get("/api/courses").json()]
        assert public_titles == ["Public"]
        assert [c["title"] for c in client.get("/api/courses", headers=user_headers).json()] == ["Public"]
        assert len(client.get("/api/courses", headers=admin_headers).json()) == 2

    def test_listing_filters_by_category(self, client, make_course):
        make_course(title="Graphs", category="Algorithms", is_public=True)
        make_course(title="SQL", category="Databases", is_public=True)
        resp = client.get("/api/courses", params={"category": "Databases"})
        assert [c["title"] for c in resp.json()] == ["SQL"]

    def test_get_private_course_requires_access(self, client, make_course, user_headers, admin_headers):
        course = make_course()
        assert client.get(f"/api/courses/{course['id']}", headers=user_headers).status_code == 403
        assert client.get(f"/api/courses/{course['id']}", headers=admin_headers).status_code == 200

    def test_get_missing_course_is_404(self, client, user_headers):
        assert client.get("/api/courses/999", headers=user_headers).status_code == 404

    def test_patch_updates_fields(self, client, make_course, admin_headers):
        course = make_course()
        resp = client.patch(
            f"/api/courses/{course['id']}",
            json={"rating": 4.5, "is_public": True},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["rating"] == 4.5
        assert body["is_public"] is True
        assert body["title"] == course["title"]

    def test_patch_missing_course_is_404(self, client, admin_headers):
        resp = client.patch("/api/courses/42", json={"rating": 1}, headers=admin_headers)
        assert resp.status_code == 404

    def test_patch_rejects_null_for_required_fields(self, client, make_course, admin_headers):
        course = make_course()
        for payload in ({"title": None}, {"is_public": None}, {"tags": None}, {"title": "  "}):
            resp = client.patch(f"/api/courses/{course['id']}", json=payload, headers=admin_headers)
            assert resp.status_code == 422, payload

        stored = client.get(f"/api/courses/{course['id']}", headers=admin_headers).json()
        assert stored["title"] == course["title"]
        assert stored["is_public"] is False

    def test_collection_routes_accept_trailing_slash(self, client, admin_headers):
        created = client.post("/api/courses/", json={"title": "Slashed", "is_public": True}, headers=admin_headers)
        assert created.status_code == 200
        listed = client.get("/api/courses/")
        assert listed.status_code == 200
        assert [c["title"] for c in listed.json()] == ["Slashed"]

    def test_delete_removes_course_and_enrollments(self, client, make_course, admin_headers, user_headers, mock_db):
        course = make_course(allow_direct_enrollment=True)
        client.post(f"/api/courses/{course['id']}/enroll", headers=user_headers)

        assert client.delete(f"/api/courses/{course['id']}", headers=admin_headers).status_code == 200
        assert run(mock_db.course_enrollments.count_documents({"course_id": course["id"]})) == 0
        assert client.delete(f"/api/courses/{course['id']}", headers=admin_headers).status_code == 404


class TestCourseEnrollment:
    def test_direct_enrollment_must_be_allowed(self, client, make_course, user_headers):
        course = make_course()
        resp = client.post(f"/api/courses/{course['id']}/enroll", headers=user_headers)
        assert resp.status_code == 403

    def test_enroll_is_idempotent_and_counts_once(self, client, make_course, user_headers, admin_headers):
        course = make_course(allow_direct_enrollment=True)

        first = client.post(f"/api/courses/{course['id']}/enroll", headers=user_headers)
        second = client.post(f"/api/courses/{course['id']}/enroll", headers=user_headers)
        assert first.json()["already_enrolled"] is False
        assert second.json()["already_enrolled"] is True
        assert first.json()["enrollment"]["id"] == second.json()["enrollment"]["id"]

        refreshed = client.get(f"/api/courses/{course['id']}", headers=admin_headers).json()
        assert refreshed["enrollment_count"] == 1
        assert refreshed["enrolled_users"] == ["user-1"]

    def test_enrolled_user_can_read_private_course(self, client, make_course, user_headers):
        course = make_course(allow_direct_enrollment=True)
        client.post(f"/api/courses/{course['id']}/enroll", headers=user_headers)
        assert client.get(f"/api/courses/{course['id']}", headers=user_headers).status_code == 200

    def test_enrolled_listing(self, client, make_course, user_headers, other_headers):
        course = make_course(allow_direct_enrollment=True)
        make_course(title="Other", allow_direct_enrollment=True)
        client.post(f"/api/courses/{course['id']}/enroll", headers=user_headers)

        assert [c["id"] for c in client.get("/api/courses/enrolled", headers=user_headers).json()] == [course["id"]]
        assert client.get("/api/courses/enrolled", headers=other_headers).json() == []

    def test_unenroll_decrements_and_never_goes_negative(self, client, make_course, user_headers, admin_headers, mock_db):
        course = make_course(allow_direct_enrollment=True)
        client.post(f"/api/courses/{course['id']}/enroll", headers=user_headers)

        # Simulate drift between the counter and the enrollment records
        run(mock_db.courses.update_one({"id": course["id"]}, {"$set": {"enrollment_count": 0}}))

        resp = client.delete(f"/api/courses/{course['id']}/enroll", headers=user_headers)
        assert resp.status_code == 200
        refreshed = client.get(f"/api/courses/{course['id']}", headers=admin_headers).json()
        assert refreshed["enrollment_count"] == 0
        assert refreshed["enrolled_users"] == []

        again = client.delete(f"/api/courses/{course['id']}/enroll", headers=user_headers)
        assert again.status_code == 404

    def test_admin_lists_course_enrollments(self, client, make_course, user_headers, other_headers, admin_headers):
        course = make_course(allow_direct_enrollment=True)
        client.post(f"/api/courses/{course['id']}/enroll", headers=user_headers)
        client.post(f"/api/courses/{course['id']}/enroll", headers=other_headers)

        resp = client.get(f"/api/courses/{course['id']}/enrollments", headers=admin_headers)
        assert [e["user_id"] for e in resp.json()] == ["user-1", "user-2"]
        assert client.get(f"/api/courses/{course['id']}/enrollments", headers=user_headers).status_code == 403


class TestResetProgress:
    def test_requires_authentication(self, client, make_course):
        course = make_course()
        assert client.post(f"/api/courses/{course['id']}/reset-progress").status_code == 401

    def test_denied_without_access(self, client, make_course, user_headers):
        course = make_course()
        resp = client.post(f"/api/courses/{course['id']}/reset-progress", headers=user_headers)
        assert resp.status_code == 403

    def test_clears_progress_for_caller_only(self, client, make_course, user_headers, mock_db):
        course = make_course(allow_direct_enrollment=True)
        client.post(f"/api/courses/{course['id']}/enroll", headers=user_headers)
        client.post(f"/api/courses/{course['id']}/enroll", headers=auth_headers("user-2"))

        run(mock_db.course_enrollments.update_many(
            {"course_id": course["id"]},
            {"$set": {"progress": 60.0, "completed_modules": [1, 2]}},
        ))
        run(mock_db.module_progress.insert_many([
            {"user_id": "user-1", "course_id": course["id"], "module_id": 1, "is_completed": True},
            {"user_id": "user-2", "course_id": course["id"], "module_id": 1, "is_completed": True},
        ]))

        resp = client.post(f"/api/courses/{course['id']}/reset-progress", headers=user_headers)
        assert resp.status_code == 200
        assert resp.json() == {"success": True}

        mine = run(mock_db.course_enrollments.find_one({"user_id": "user-1"}))
        theirs = run(mock_db.course_enrollments.find_one({"user_id": "user-2"}))
        assert mine["progress"] == 0.0
        assert mine["completed_modules"] == []
        assert theirs["progress"] == 60.0
        assert run(mock_db.module_progress.count_documents({"user_id": "user-1"})) == 0
        assert run(mock_db.module_progress.count_documents({"user_id": "user-2"})) == 1

    def test_missing_course_is_404(self, client, user_headers):
        assert client.post("/api/courses/77/reset-progress", headers=user_headers).status_code == 404


class TestConcurrentEnrollment:
    def test_losing_insert_returns_existing_record(self, make_course, mock_db, monkeypatch):
        course = make_course(allow_direct_enrollment=True)
        run(mock_db.course_enrollments.create_index([("user_id", 1), ("course_id", 1)], unique=True))
        first, created = run(course_db.enroll_user(mock_db, course["id"], "user-1"))
        assert created is True

        # A second request whose lookup ran before the first insert landed
        real_lookup = course_db.get_enrollment
        calls = []

        async def stale_lookup(db, course_id, user_id):
            calls.append(user_id)
            if len(calls) == 1:
                return None
            return await real_lookup(db, course_id, user_id)

        monkeypatch.setattr(course_db, "get_enrollment", stale_lookup)
        again, created = run(course_db.enroll_user(mock_db, course["id"], "user-1"))

        assert created is False
        assert again["id"] == first["id"]
        assert run(mock_db.course_enrollments.count_documents({})) == 1
        assert run(mock_db.courses.find_one({"id": course["id"]}))["enrollment_count"] == 1
