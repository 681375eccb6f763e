"""HTTP tests for checkout, return and the circulation reports."""

from datetime import date, timedelta

import pytest


@pytest.fixture
def copy_id(client, staff_headers, api_library):
    copies = client.get(
        f"/books/{api_library.single_copy_book.id}/copies", headers=staff_headers
    ).json()
    return copies[0]["id"]


def test_checkout_and_return(client, staff_headers, api_library, copy_id):
    due = (date.today() + timedelta(days=10)).isoformat()
    response = client.post(
        "/checkouts",
        headers=staff_headers,
        json={"copyId": copy_id, "studentId": api_library.student.id, "dueDate": due},
    )
    assert response.status_code == 201
    record = response.json()
    assert record["status"] == "checked out"
    assert record["due_date"] == due

    again = client.post(
        "/checkouts",
        headers=staff_headers,
        json={"copyId": copy_id, "studentId": api_library.other_student.id},
    )
    assert again.status_code == 409

    returned = client.put(f"/checkouts/{record['id']}/return", headers=staff_headers)
    assert returned.status_code == 200
    assert returned.json()["status"] == "returned"
    assert returned.json()["return_date"] is not None

    repeat = client.put(f"/checkouts/{record['id']}/return", headers=staff_headers)
    assert repeat.status_code == 200
    assert repeat.json() == returned.json()

    copy = client.get(
        f"/books/{api_library.single_copy_book.id}/copies", headers=staff_headers
    ).json()[0]
    assert copy["status"] == "available"


def test_return_unknown_checkout(client, staff_headers):
    response = client.put("/checkouts/checkout_missing000/return", headers=staff_headers)
    assert response.status_code == 404


def test_checkout_request_needs_one_target(client, staff_headers, api_library, copy_id):
    response = client.post(
        "/checkouts",
        headers=staff_headers,
        json={"copyId": copy_id, "bookId": api_library.book.id, "studentId": api_library.student.id},
    )
    assert response.status_code == 422


def test_staff_must_name_student(client, staff_headers, copy_id):
    response = client.post("/checkouts", headers=staff_headers, json={"copyId": copy_id})
    assert response.status_code == 400


def test_past_due_date_rejected(client, staff_headers, api_library, copy_id):
    response = client.post(
        "/checkouts",
        headers=staff_headers,
        json={
            "copyId": copy_id,
            "studentId": api_library.student.id,
            "dueDate": (date.today() - timedelta(days=1)).isoformat(),
        },
    )
    assert response.status_code == 400


def test_student_self_service(client, student_headers, api_library):
    response = client.post(
        "/checkouts", headers=student_headers, json={"bookId": api_library.book.id}
    )
    assert response.status_code == 201
    record = response.json()
    assert record["student_id"] == api_library.student.id

    status = client.get(
        "/checkouts/status", headers=student_headers, params={"isbn": "978-0-06-440055-8"}
    )
    assert status.status_code == 200
    assert status.json()["action"] == "return"

    returned = client.put(f"/checkouts/{record['id']}/return", headers=student_headers)
    assert returned.status_code == 200

    history = client.get(
        f"/checkouts/student/{api_library.student.id}/reading-history", headers=student_headers
    )
    assert history.status_code == 200
    assert [h["book_title"] for h in history.json()] == ["Charlotte's Web"]


def test_student_cannot_act_for_others(client, staff_headers, student_headers, api_library):
    other_id = api_library.other_student.id
    theirs = client.post(
        "/checkouts",
        headers=staff_headers,
        json={"bookId": api_library.book.id, "studentId": other_id},
    ).json()

    assert (
        client.put(f"/checkouts/{theirs['id']}/return", headers=student_headers).status_code
        == 403
    )
    assert (
        client.post(
            "/checkouts",
            headers=student_headers,
            json={"bookId": api_library.book.id, "studentId": other_id},
        ).status_code
        == 403
    )
    assert (
        client.get(
            f"/checkouts/student/{other_id}/reading-history", headers=student_headers
        ).status_code
        == 403
    )
    assert client.get("/checkouts", headers=student_headers).status_code == 403


def test_return_by_isbn(client, staff_headers, api_library):
    record = client.post(
        "/checkouts",
        headers=staff_headers,
        json={"bookId": api_library.book.id, "studentId": api_library.student.id},
    ).json()

    response = client.put(
        "/checkouts/return-by-isbn", headers=staff_headers, json={"isbn": "9780064400558"}
    )
    assert response.status_code == 200
    assert response.json()["id"] == record["id"]

    none_open = client.put(
        "/checkouts/return-by-isbn", headers=staff_headers, json={"isbn": "9780064400558"}
    )
    assert none_open.status_code == 404


def test_mark_overdue_and_reports(client, staff_headers, api_library):
    student_id = api_library.student.id
    record = client.post(
        "/checkouts",
        headers=staff_headers,
        json={
            "bookId": api_library.book.id,
            "studentId": student_id,
            "dueDate": date.today().isoformat(),
        },
    ).json()

    as_of = (date.today() + timedelta(days=2)).isoformat()
    marked = client.post("/checkouts/mark-overdue", headers=staff_headers, json={"asOf": as_of})
    assert marked.status_code == 200
    assert marked.json() == {"updated": 1}

    current = client.get(f"/checkouts/student/{student_id}/current", headers=staff_headers).json()
    assert [c["id"] for c in current] == [record["id"]]
    assert current[0]["status"] == "overdue"
    assert current[0]["student_name"] == "Ava Lopez"

    on_book = client.get(
        f"/checkouts/book/{api_library.book.id}/current", headers=staff_headers
    ).json()
    assert [c["id"] for c in on_book] == [record["id"]]

    ledger = client.get("/checkouts", headers=staff_headers).json()
    assert [c["book_title"] for c in ledger] == ["Charlotte's Web"]

    copy_history = client.get(
        f"/checkouts/copy/{record['book_copy_id']}", headers=staff_headers
    ).json()
    assert [c["id"] for c in copy_history] == [record["id"]]

    history = client.get(f"/checkouts/student/{student_id}/history", headers=staff_headers)
    assert len(history.json()) == 1
