from bson import ObjectId

from conftest import create_build, lot_photo, login_headers, register_user


# ============================================================
# CREATE
# ============================================================

def test_create_build(client, fake_db, auth_headers):
    data = create_build(client, auth_headers, lotTerrainType="sloped", hasOldHouseToDemolish=True)

    project = data["project"]
    assert project["status"] == "active"
    assert project["summary"] == {
        "lotAddress": "12 Cedar Lane",
        "lotSizeDimensions": "50x120",
        "lotPrice": 185000.0,
    }
    assert project["currentStepType"] == "LOT_INTAKE"
    assert project["currentStepIndex"] == 0

    step = data["firstStep"]
    assert step["projectId"] == project["_id"]
    assert step["stepType"] == "LOT_INTAKE"
    assert step["title"] == "Lot Intake"
    assert step["status"] == "in_progress"
    assert step["data"] == {"lotTerrainType": "sloped", "hasOldHouseToDemolish": True}
    assert [p["imageKitFileId"] for p in step["photos"]] == ["file_1", "file_2"]
    assert step["photos"][0]["expiresAt"] is not None

    assert len(fake_db["build_projects"].documents) == 1
    assert len(fake_db["build_steps"].documents) == 1


def test_create_build_defaults_terrain(client, auth_headers):
    data = create_build(client, auth_headers)
    assert data["firstStep"]["data"] == {"lotTerrainType": "flat", "hasOldHouseToDemolish": False}


def test_create_build_caps_and_filters_photos(client, auth_headers):
    photos = [lot_photo(i) for i in range(10)]
    photos[0] = {"url": "https://example.com/no-id.jpg"}
    body = {
        "metadata": {"lotAddress": "1 Elm", "lotSizeDimensions": "40x100", "lotPrice": "99000"},
        "photos": photos,
    }
    response = client.post("/api/builds/create", json=body, headers=auth_headers)
    assert response.status_code == 201
    kept = response.json()["firstStep"]["photos"]
    # First 8 taken, then the invalid one dropped
    assert len(kept) == 7
    assert kept[0]["imageKitFileId"] == "file_1"


def test_create_build_requires_address(client, auth_headers):
    body = {"metadata": {"lotAddress": "  ", "lotSizeDimensions": "50x120", "lotPrice": 1000}}
    response = client.post("/api/builds/create", json=body, headers=auth_headers)
    assert response.status_code == 400
    assert response.json()["message"] == "lotAddress is required"


def test_create_build_requires_dimensions(client, auth_headers):
    body = {"metadata": {"lotAddress": "1 Elm", "lotPrice": 1000}}
    response = client.post("/api/builds/create", json=body, headers=auth_headers)
    assert response.status_code == 400
    assert response.json()["message"] == "lotSizeDimensions is required"


def test_create_build_rejects_bad_price(client, auth_headers):
    for price in ["abc", 0, -10, None]:
        body = {"metadata": {"lotAddress": "1 Elm", "lotSizeDimensions": "40x100", "lotPrice": price}}
        response = client.post("/api/builds/create", json=body, headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["message"] == "lotPrice must be a valid number"


def test_create_build_requires_auth(client):
    response = client.post("/api/builds/create", json={"metadata": {}})
    assert response.status_code == 401


# ============================================================
# LISTS
# ============================================================

def test_active_builds_include_lot_photos(client, auth_headers):
    create_build(client, auth_headers)
    response = client.get("/api/builds/active", headers=auth_headers)
    assert response.status_code == 200
    builds = response.json()["builds"]
    assert len(builds) == 1
    assert [p["name"] for p in builds[0]["lotPhotos"]] == ["1.jpg", "2.jpg"]
    assert set(builds[0]["lotPhotos"][0]) == {"url", "thumbnailUrl", "name"}


def test_builds_are_scoped_to_owner(client, auth_headers):
    create_build(client, auth_headers)

    register_user(client, name="Other", email="other@example.com")
    other_headers = login_headers(client, email="other@example.com")

    assert client.get("/api/builds/active", headers=other_headers).json()["builds"] == []


def test_complete_and_reactivate(client, auth_headers):
    project_id = create_build(client, auth_headers)["project"]["_id"]

    response = client.patch(f"/api/builds/{project_id}/complete", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["build"]["status"] == "completed"

    assert client.get("/api/builds/active", headers=auth_headers).json()["builds"] == []
    completed = client.get("/api/builds/completed", headers=auth_headers).json()["builds"]
    assert [b["_id"] for b in completed] == [project_id]

    # Completing twice does not match
    response = client.patch(f"/api/builds/{project_id}/complete", headers=auth_headers)
    assert response.status_code == 404

    response = client.patch(f"/api/builds/{project_id}/reactivate", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["build"]["status"] == "active"


def test_reactivate_active_build_is_404(client, auth_headers):
    project_id = create_build(client, auth_headers)["project"]["_id"]
    response = client.patch(f"/api/builds/{project_id}/reactivate", headers=auth_headers)
    assert response.status_code == 404


def test_complete_other_users_build_is_404(client, auth_headers):
    project_id = create_build(client, auth_headers)["project"]["_id"]
    register_user(client, name="Other", email="other@example.com")
    other_headers = login_headers(client, email="other@example.com")

    response = client.patch(f"/api/builds/{project_id}/complete", headers=other_headers)
    assert response.status_code == 404


# ============================================================
# SINGLE BUILD / STEPS
# ============================================================

def test_get_build_with_steps(client, auth_headers):
    project_id = create_build(client, auth_headers)["project"]["_id"]
    response = client.get(f"/api/builds/{project_id}", headers=auth_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["build"]["_id"] == project_id
    assert [s["stepType"] for s in data["steps"]] == ["LOT_INTAKE"]


def test_get_build_malformed_id_is_404(client, auth_headers):
    response = client.get("/api/builds/not-an-id", headers=auth_headers)
    assert response.status_code == 404


def test_get_steps_requires_project_id(client, auth_headers):
    response = client.get("/api/builds/steps", headers=auth_headers)
    assert response.status_code == 400
    assert response.json()["message"] == "projectId query param is required"


def test_add_step(client, fake_db, auth_headers):
    project_id = create_build(client, auth_headers)["project"]["_id"]

    response = client.post(
        "/api/builds/steps/add",
        json={
            "projectId": project_id,
            "title": "  Foundation ",
            "stepNumber": 2,
            "stepType": "FOUNDATION",
            "startDate": "2026-03-01",
            "cost": "12500.50 USD",
            "notes": "Pour slab",
        },
        headers=auth_headers
    )
    assert response.status_code == 201
    step = response.json()["step"]
    assert step["title"] == "Foundation"
    assert step["stepType"] == "FOUNDATION"
    assert step["stepNumber"] == 2
    assert step["status"] == "planned"
    assert step["costAmount"] == 12500.5
    assert step["dateStart"] == "2026-03-01"
    assert step["dateEnd"] == ""

    project = fake_db["build_projects"].documents[0]
    assert project["current_step_type"] == "FOUNDATION"
    assert project["current_step_index"] == 1

    steps = client.get(f"/api/builds/steps?projectId={project_id}", headers=auth_headers).json()["steps"]
    assert [s["title"] for s in steps] == ["Lot Intake", "Foundation"]


def test_add_step_defaults(client, auth_headers):
    project_id = create_build(client, auth_headers)["project"]["_id"]
    response = client.post(
        "/api/builds/steps/add",
        json={"projectId": project_id, "title": "Framing", "cost": -40},
        headers=auth_headers
    )
    step = response.json()["step"]
    assert step["stepType"] == "GENERAL"
    assert step["stepNumber"] == 1
    assert step["costAmount"] == 0


def test_add_step_validation(client, auth_headers):
    response = client.post("/api/builds/steps/add", json={"title": "Framing"}, headers=auth_headers)
    assert response.status_code == 400
    assert response.json()["message"] == "projectId is required"

    project_id = create_build(client, auth_headers)["project"]["_id"]
    response = client.post("/api/builds/steps/add", json={"projectId": project_id, "title": " "}, headers=auth_headers)
    assert response.status_code == 400
    assert response.json()["message"] == "title is required"

    response = client.post(
        "/api/builds/steps/add",
        json={"projectId": str(ObjectId()), "title": "Framing"},
        headers=auth_headers
    )
    assert response.status_code == 404
    assert response.json()["message"] == "Build project not found"


def _first_step(client, headers):
    data = create_build(client, headers)
    return data["project"]["_id"], data["firstStep"]["_id"]


def test_update_step_partial(client, auth_headers):
    project_id, step_id = _first_step(client, auth_headers)

    response = client.patch(
        "/api/builds/steps/update",
        json={
            "stepId": step_id,
            "projectId": project_id,
            "cost": "3000",
            "costCurrency": "usd",
            "status": "completed",
        },
        headers=auth_headers
    )
    assert response.status_code == 200
    step = response.json()["step"]
    assert step["costAmount"] == 3000
    assert step["costCurrency"] == "USD"
    assert step["status"] == "completed"
    assert step["revisionNumber"] == 2
    # Untouched fields survive
    assert step["title"] == "Lot Intake"
    assert len(step["photos"]) == 2


def test_update_step_ignores_unknown_status(client, auth_headers):
    project_id, step_id = _first_step(client, auth_headers)
    response = client.patch(
        "/api/builds/steps/update",
        json={"stepId": step_id, "projectId": project_id, "status": "exploded"},
        headers=auth_headers
    )
    assert response.status_code == 200
    assert response.json()["step"]["status"] == "in_progress"


def test_update_step_photos_replace_list(client, auth_headers, monkeypatch):
    from citybuilder.core.config import settings
    monkeypatch.setattr(settings, "MAXIMUM_STEP_PHOTOS", 3)
    project_id, step_id = _first_step(client, auth_headers)

    photos = [lot_photo(i) for i in range(5)]
    photos.insert(1, {"imageKitFileId": " ", "url": "https://example.com/x.jpg"})
    photos.insert(2, "not-a-photo")
    photos[0] = {"imageKitFileId": "only_url", "url": "https://example.com/a.jpg"}

    response = client.patch(
        "/api/builds/steps/update",
        json={"stepId": step_id, "projectId": project_id, "photos": photos},
        headers=auth_headers
    )
    assert response.status_code == 200
    kept = response.json()["step"]["photos"]
    assert [p["imageKitFileId"] for p in kept] == ["only_url", "file_1", "file_2"]
    assert kept[0]["thumbnailUrl"] == "https://example.com/a.jpg"


def test_update_step_photos_must_be_array(client, auth_headers):
    project_id, step_id = _first_step(client, auth_headers)
    response = client.patch(
        "/api/builds/steps/update",
        json={"stepId": step_id, "projectId": project_id, "photos": "nope"},
        headers=auth_headers
    )
    assert response.status_code == 400
    assert response.json()["message"] == "photos must be an array"


def test_update_step_blank_title(client, auth_headers):
    project_id, step_id = _first_step(client, auth_headers)
    response = client.patch(
        "/api/builds/steps/update",
        json={"stepId": step_id, "projectId": project_id, "title": "   "},
        headers=auth_headers
    )
    assert response.status_code == 400
    assert response.json()["message"] == "title cannot be empty"


def test_update_step_coerces_scalar_text_fields(client, auth_headers):
    project_id, step_id = _first_step(client, auth_headers)
    response = client.patch(
        "/api/builds/steps/update",
        json={
            "stepId": step_id,
            "projectId": project_id,
            "title": 42,
            "notes": 7.5,
            "dateStart": 20260301,
            "costCurrency": None,
        },
        headers=auth_headers
    )
    assert response.status_code == 200
    step = response.json()["step"]
    assert step["title"] == "42"
    assert step["notes"] == "7.5"
    assert step["dateStart"] == "20260301"
    assert step["costCurrency"] == ""


def test_add_step_coerces_scalar_notes(client, auth_headers):
    project_id = create_build(client, auth_headers)["project"]["_id"]
    response = client.post(
        "/api/builds/steps/add",
        json={"projectId": project_id, "title": "Roofing", "notes": 12, "endDate": 2027},
        headers=auth_headers
    )
    assert response.status_code == 201
    step = response.json()["step"]
    assert step["notes"] == "12"
    assert step["dateEnd"] == "2027"

    # A title must still be a non-blank string
    response = client.post(
        "/api/builds/steps/add",
        json={"projectId": project_id, "title": 42},
        headers=auth_headers
    )
    assert response.status_code == 400
    assert response.json()["message"] == "title is required"


def test_update_step_not_found(client, auth_headers):
    project_id, _ = _first_step(client, auth_headers)
    response = client.patch(
        "/api/builds/steps/update",
        json={"stepId": str(ObjectId()), "projectId": project_id, "notes": "x"},
        headers=auth_headers
    )
    assert response.status_code == 404
    assert response.json()["message"] == "Step not found"


def test_update_step_requires_ids(client, auth_headers):
    response = client.patch("/api/builds/steps/update", json={"projectId": "x"}, headers=auth_headers)
    assert response.status_code == 400
    assert response.json()["message"] == "stepId is required"

    response = client.patch("/api/builds/steps/update", json={"stepId": "x"}, headers=auth_headers)
    assert response.status_code == 400
    assert response.json()["message"] == "projectId is required"


def test_step_photo_upload_not_implemented(client, auth_headers):
    response = client.post("/api/builds/steps/photos/upload", headers=auth_headers)
    assert response.status_code == 501
    assert response.json()["message"] == "Not implemented yet"
