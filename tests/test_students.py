from conftest import auth_headers


def new_student(client, trainer_id, name="Hugo Alves", email="hugo@example.com", **extra):
    return client.post("/students", json={"full_name": name, "email": email, **extra}, headers=auth_headers(trainer_id))


def test_free_plan_allows_a_single_student(client, make_trainer):
    trainer_id = make_trainer()
    assert new_student(client, trainer_id).status_code == 201
    resp = new_student(client, trainer_id, name="Ines", email="ines@example.com")
    assert resp.status_code == 403
    assert "free" in resp.json()["detail"]


def test_pro_plan_allows_more_students(client, make_trainer):
    trainer_id = make_trainer(tier="pro", status="active")
    for i in range(3):
        assert new_student(client, trainer_id, name=f"Student {i}", email=f"s{i}@example.com").status_code == 201
    assert len(client.get("/students", headers=auth_headers(trainer_id)).json()) == 3


def test_list_filters_by_status_and_search(client, make_trainer):
    trainer_id = make_trainer(tier="pro", status="active")
    new_student(client, trainer_id, name="Joana Reis", email="joana@example.com", status="active")
    new_student(client, trainer_id, name="Lucas Melo", email="lucas@example.com", status="paused")
    headers = auth_headers(trainer_id)

    paused = client.get("/students", params={"status": "paused"}, headers=headers).json()
    assert [s["full_name"] for s in paused] == ["Lucas Melo"]
    found = client.get("/students", params={"q": "joana"}, headers=headers).json()
    assert [s["email"] for s in found] == ["joana@example.com"]


def test_students_are_scoped_to_their_trainer(client, make_trainer, make_student):
    owner = make_trainer()
    other = make_trainer()
    student_id = make_student(owner)
    assert client.get(f"/students/{student_id}", headers=auth_headers(other)).status_code == 404
    assert client.get("/students", headers=auth_headers(other)).json() == []


def test_update_and_delete_student(client, make_trainer, make_student):
    trainer_id = make_trainer()
    student_id = make_student(trainer_id, status="onboarding")
    headers = auth_headers(trainer_id)

    resp = client.patch(f"/students/{student_id}", json={"status": "active", "goal": "Strength", "full_name": None}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["status"] == "active"
    assert resp.json()["goal"] == "Strength"
    assert resp.json()["full_name"] == "Ana Souza"

    assert client.delete(f"/students/{student_id}", headers=headers).status_code == 200
    assert client.get(f"/students/{student_id}", headers=headers).status_code == 404


def test_invalid_status_is_rejected(client, make_trainer):
    resp = new_student(client, make_trainer(), status="retired")
    assert resp.status_code == 422


def test_enterprise_team_members(client, make_trainer):
    owner = make_trainer(tier="enterprise", status="active")
    headers = auth_headers(owner)
    resp = client.post("/trainers/team", json={"email": "assistant@example.com", "full_name": "Assistant"}, headers=headers)
    assert resp.status_code == 201
    assert resp.json()["parent_trainer_id"] == owner
    assert resp.json()["subscription_tier"] == "enterprise"
    assert [t["email"] for t in client.get("/trainers/team", headers=headers).json()] == ["assistant@example.com"]


def test_pro_cannot_add_team_members(client, make_trainer):
    trainer_id = make_trainer(tier="pro", status="active")
    resp = client.post("/trainers/team", json={"email": "helper@example.com"}, headers=auth_headers(trainer_id))
    assert resp.status_code == 403


def test_profile_edit(client, make_trainer):
    trainer_id = make_trainer()
    resp = client.patch("/trainers/me", json={"full_name": "Marta Rocha"}, headers=auth_headers(trainer_id))
    assert resp.status_code == 200
    assert resp.json()["full_name"] == "Marta Rocha"


def test_team_member_cannot_grow_its_own_team(client, make_trainer):
    owner = make_trainer(tier="enterprise", status="active")
    member = client.post("/trainers/team", json={"email": "first@example.com"}, headers=auth_headers(owner)).json()
    resp = client.post("/trainers/team", json={"email": "nested@example.com"}, headers=auth_headers(member["id"]))
    assert resp.status_code == 403
    assert client.get("/trainers/team", headers=auth_headers(member["id"])).json() == []
