from conftest import question_doc


def _payload(**overrides):
    body = {
        "subject": "Physics",
        "topic": "Kinematics",
        "text": "A body moves at 10 m s^{-1}. Distance in 2 s?",
        "options": ["5 m", "10 m", "20 m", "40 m"],
        "correctAnswerIndex": 2,
        "explanation": "d = vt",
    }
    body.update(overrides)
    return body


def test_create_question(client, db, make_user):
    user, headers = make_user()
    response = client.post("/api/questions/", json=_payload(), headers=headers)
    assert response.status_code == 200
    stored = db.questions.docs[0]
    assert stored["createdBy"] == user.id
    assert stored["normalizedText"] == "a body moves at 10 m s^{-1}. distance in 2 s?"


def test_question_shape_is_validated(client, make_user):
    _, headers = make_user()
    assert client.post("/api/questions/", json=_payload(options=["a", "b", "c"]), headers=headers).status_code == 422
    assert client.post("/api/questions/", json=_payload(correctAnswerIndex=4), headers=headers).status_code == 422
    assert client.post("/api/questions/", json=_payload(text="   "), headers=headers).status_code == 422


def test_listing_is_admin_only_and_searchable(client, db, make_user):
    db.questions.docs.extend([
        question_doc("q1", subject="Physics", topic="Optics", created_at="2024-01-01T00:00:00Z"),
        question_doc("q2", subject="Biology", topic="Genetics", created_at="2024-02-01T00:00:00Z"),
    ])
    _, student = make_user()
    _, admin = make_user(role="admin")

    assert client.get("/api/questions/", headers=student).status_code == 403

    everything = client.get("/api/questions/", headers=admin).json()
    assert [q["id"] for q in everything] == ["q2", "q1"]

    found = client.get("/api/questions/", params={"search": "opt"}, headers=admin).json()
    assert [q["id"] for q in found] == ["q1"]


def test_get_question_renders_segments(client, db, make_user):
    db.questions.docs.append(question_doc("q1", text="Formula of water is H_{2}O"))
    _, admin = make_user(role="admin")
    body = client.get("/api/questions/q1/", headers=admin).json()
    assert {"type": "sub", "value": "2"}.items() <= body["textSegments"][1].items()


def test_update_and_delete(client, db, make_user):
    db.questions.docs.append(question_doc("q1"))
    _, admin = make_user(role="admin")

    updated = client.put("/api/questions/q1/", json=_payload(text="New   Text"), headers=admin)
    assert updated.status_code == 200
    assert db.questions.docs[0]["normalizedText"] == "new text"
    assert db.questions.docs[0]["correctAnswerIndex"] == 2

    assert client.delete("/api/questions/q1/", headers=admin).status_code == 200
    assert client.delete("/api/questions/q1/", headers=admin).status_code == 404
    assert client.put("/api/questions/q1/", json=_payload(), headers=admin).status_code == 404


def test_dedupe_previews_then_removes(client, db, make_user):
    texts = ["a", "b", "A", " a", "c"]
    db.questions.docs.extend(
        question_doc(f"q{i}", text=text, created_at=f"2024-01-01T00:00:0{i}Z") for i, text in enumerate(texts)
    )
    _, admin = make_user(role="admin")

    preview = client.post("/api/questions/dedupe", json={"confirm": False}, headers=admin).json()
    assert preview == {"confirmed": False, "duplicateIds": ["q2", "q3"], "kept": 3, "removed": 0}
    assert len(db.questions.docs) == 5

    done = client.post("/api/questions/dedupe", json={"confirm": True}, headers=admin).json()
    assert done["removed"] == 2
    assert sorted(d["id"] for d in db.questions.docs) == ["q0", "q1", "q4"]


def test_dedupe_failure_removes_nothing(client, db, make_user):
    db.questions.docs.extend([question_doc("q1", text="same"), question_doc("q2", text="same", created_at="2024-02-01T00:00:00Z")])
    db.questions.fail_writes = True
    _, admin = make_user(role="admin")

    response = client.post("/api/questions/dedupe", json={"confirm": True}, headers=admin)

    assert response.status_code == 500
    assert len(db.questions.docs) == 2
