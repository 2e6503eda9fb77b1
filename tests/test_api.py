def auth(user):
    return {"X-User-Id": str(user.id)}


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


async def test_register_user(client):
    response = await client.post("/users", json={"email": "Linus@Example.com", "full_name": "Linus"})
    assert response.status_code == 201
    assert response.json()["email"] == "linus@example.com"

    again = await client.post("/users", json={"email": "linus@example.com", "full_name": "Other"})
    assert again.status_code == 400
    assert again.json()["error"] == "user_error"


async def test_missing_and_unknown_user_header(client, user):
    assert (await client.get("/users/me")).status_code == 422
    assert (await client.get("/users/me", headers={"X-User-Id": "9999"})).status_code == 401

    response = await client.get("/users/me", headers=auth(user))
    assert response.status_code == 200
    assert response.json()["full_name"] == "Ada Lovelace"


async def test_work_history_crud(client, user):
    created = await client.post(
        "/work-history",
        headers=auth(user),
        json={
            "company_name": "Hooli",
            "job_title": "SRE",
            "start_date": "2021-02-01",
            "achievements": ["Kept the lights on", " "],
        },
    )
    assert created.status_code == 201
    body = created.json()
    assert body["end_date"] is None
    assert [a["description"] for a in body["achievements"]] == ["Kept the lights on"]

    record_id = body["id"]
    updated = await client.patch(
        f"/work-history/{record_id}", headers=auth(user), json={"end_date": "2024-01-31"}
    )
    assert updated.json()["end_date"] == "2024-01-31"
    assert updated.json()["job_title"] == "SRE"

    achievement = await client.post(
        f"/work-history/{record_id}/achievements", headers=auth(user), json={"description": "Cut pages by half"}
    )
    assert achievement.status_code == 201

    listing = await client.get("/work-history", headers=auth(user))
    assert [r["company_name"] for r in listing.json()] == ["Hooli"]

    assert (await client.delete(f"/work-history/{record_id}", headers=auth(user))).status_code == 204
    assert (await client.get(f"/work-history/{record_id}", headers=auth(user))).status_code == 404


async def test_other_users_record_is_not_found(client, other_user, work_history):
    response = await client.get(f"/work-history/{work_history.id}", headers=auth(other_user))
    assert response.status_code == 404
    assert response.json() == {"error": "not_found", "detail": "Work history not found or access denied"}


async def test_merge_into_itself_is_rejected(client, user, work_history):
    response = await client.post(
        "/work-history/merge",
        headers=auth(user),
        json={"primary_id": work_history.id, "secondary_ids": [work_history.id]},
    )
    assert response.status_code == 400
    assert response.json()["error"] == "validation_error"


async def test_deduplicate_preview_and_apply(client, stub_llm, user, work_history):
    stub_llm.responses.append({
        "final_achievements": [
            {"description": "Built Python payment APIs", "original_indices": [1], "action": "optimized"},
            {"description": "Halved deployment time", "original_indices": [2], "action": "optimized"},
        ],
    })

    preview = await client.post(
        f"/work-history/{work_history.id}/achievements/deduplicate",
        headers=auth(user),
        json={"dry_run": True},
    )
    assert preview.status_code == 200
    assert [p["description"] for p in preview.json()["preview"]] == [
        "Built Python payment APIs",
        "Halved deployment time",
    ]

    applied = await client.post(
        f"/work-history/{work_history.id}/achievements/apply",
        headers=auth(user),
        json={"approved_achievements": ["Built Python payment APIs"]},
    )
    assert applied.json()["applied_count"] == 1

    listing = await client.get(f"/work-history/{work_history.id}/achievements", headers=auth(user))
    assert [a["description"] for a in listing.json()] == ["Built Python payment APIs"]


async def test_work_skills(client, user, work_history):
    added = await client.post(
        f"/work-history/{work_history.id}/skills", headers=auth(user), json={"skill_name": "postgres"}
    )
    assert added.status_code == 201
    assert added.json()["skill"]["name"] == "PostgreSQL"

    compound = await client.post(
        f"/work-history/{work_history.id}/skills", headers=auth(user), json={"skill_name": "React/Vue"}
    )
    assert compound.status_code == 400

    removed = await client.delete(
        f"/work-history/{work_history.id}/skills/{added.json()['id']}", headers=auth(user)
    )
    assert removed.json() == {"success": True, "deleted": True, "skill_name": "PostgreSQL"}


async def test_education_crud(client, user):
    created = await client.post(
        "/education", headers=auth(user), json={"institution": "University of London", "degree": "BSc"}
    )
    assert created.status_code == 201
    education_id = created.json()["id"]

    updated = await client.patch(
        f"/education/{education_id}", headers=auth(user), json={"field_of_study": "Mathematics"}
    )
    assert updated.json()["field_of_study"] == "Mathematics"

    assert (await client.delete(f"/education/{education_id}", headers=auth(user))).status_code == 204
    assert (await client.get("/education", headers=auth(user))).json() == []


async def test_job_posting_status_and_tailoring(client, stub_llm, user, work_history):
    stub_llm.responses.append({"technical_skills": ["Python"], "soft_skills": ["Communication"]})
    created = await client.post(
        "/job-postings",
        headers=auth(user),
        json={"title": "Python Engineer", "company": "Globex", "content": "Build Python services for payments."},
    )
    assert created.status_code == 201
    posting = created.json()
    assert posting["details"]["technical_skills"] == ["Python"]

    status = await client.put(f"/job-postings/{posting['id']}/status", headers=auth(user), json={"status": "applied"})
    assert status.json()["status"] == "applied"
    cleared = await client.put(f"/job-postings/{posting['id']}/status", headers=auth(user), json={"status": ""})
    assert cleared.json()["status"] is None

    stub_llm.responses.append({
        "header": "Ada Lovelace",
        "summary": "Python engineer.",
        "work_experience": "### Backend Engineer at Acme Corp",
        "skills": "Python",
    })
    resume = await client.post(f"/job-postings/{posting['id']}/resume", headers=auth(user))
    assert resume.status_code == 200
    assert "## Professional Summary" in resume.json()["markdown"]

    fetched = await client.get(f"/job-postings/{posting['id']}", headers=auth(user))
    assert fetched.json()["document"]["resume_content"].startswith("Ada Lovelace")

    # No canned answer left: the model call fails
    failed = await client.post(f"/job-postings/{posting['id']}/cover-letter", headers=auth(user))
    assert failed.status_code == 502
    assert failed.json()["error"] == "tailoring_error"

    deleted = await client.delete(f"/job-postings/{posting['id']}/document", headers=auth(user))
    assert deleted.status_code == 204
    fetched = await client.get(f"/job-postings/{posting['id']}", headers=auth(user))
    assert fetched.json()["document"] is None


async def test_job_posting_without_extraction(client, stub_llm, user):
    response = await client.post(
        "/job-postings",
        headers=auth(user),
        json={
            "title": "Analyst",
            "company": "Initech",
            "content": "Write TPS reports every week.",
            "extract_details": False,
        },
    )
    assert response.json()["details"] is None
    assert stub_llm.calls == []


async def test_import_text_and_file(client, stub_llm, user):
    stub_llm.responses.append({
        "work_experience": [{
            "company": "Globex",
            "job_title": "Engineer",
            "start_date": "2019-05",
            "achievements": ["Launched billing"],
        }],
        "skills": ["Python"],
    })
    response = await client.post("/resumes/import-text", headers=auth(user), json={"text": "Globex engineer"})
    assert response.status_code == 201
    assert response.json()["records_created"] == 1
    assert response.json()["skills_added"] == 1

    unsupported = await client.post(
        "/resumes/import",
        headers=auth(user),
        files={"file": ("resume.docx", b"data", "application/octet-stream")},
    )
    assert unsupported.status_code == 400

    empty = await client.post(
        "/resumes/import",
        headers=auth(user),
        files={"file": ("resume.txt", b"   ", "text/plain")},
    )
    assert empty.status_code == 400
    assert empty.json()["error"] == "parse_error"


async def test_chat_conversation(client, stub_llm, user, other_user):
    stub_llm.responses.extend(["Lead with your payment APIs.", "Quantify the deployment win."])

    first = await client.post("/chat", headers=auth(user), json={"content": "How should I open my resume?"})
    assert first.status_code == 200
    conversation_id = first.json()["conversation_id"]
    assert first.json()["assistant_message"]["content"] == "Lead with your payment APIs."

    second = await client.post(
        "/chat",
        headers=auth(user),
        json={"content": "And then?", "conversation_id": conversation_id},
    )
    assert second.json()["conversation_id"] == conversation_id
    history = stub_llm.calls[1][0]
    assert history[1] == ("human", "How should I open my resume?")
    assert history[2] == ("ai", "Lead with your payment APIs.")

    detail = await client.get(f"/chat/conversations/{conversation_id}", headers=auth(user))
    assert [m["role"] for m in detail.json()["messages"]] == ["user", "assistant", "user", "assistant"]
    assert detail.json()["title"] == "How should I open my resume?"

    foreign = await client.get(f"/chat/conversations/{conversation_id}", headers=auth(other_user))
    assert foreign.status_code == 404

    failed = await client.post("/chat", headers=auth(user), json={"content": "Anything else?"})
    assert failed.status_code == 502
    conversations = await client.get("/chat/conversations", headers=auth(user))
    assert len(conversations.json()) == 1
