import io

import pytest
from fastapi import status
from fastapi.testclient import TestClient

MB = 1024 * 1024


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def image(name: str, content: bytes, content_type: str = "image/png"):
    return ("images", (name, io.BytesIO(content), content_type))


def create_report(client: TestClient, token: str, title: str, files=None):
    return client.post(
        "/api/reports",
        headers=auth_headers(token),
        data={"title": title, "description": f"{title} description"},
        files=files or [],
    )


@pytest.mark.asyncio
async def test_create_report_with_images(client: TestClient, customer_token: str, media_store, png_bytes):
    response = create_report(
        client,
        customer_token,
        "Site inspection",
        files=[image("front.png", png_bytes), image("back.JPG", png_bytes, "image/jpeg")],
    )
    assert response.status_code == status.HTTP_201_CREATED
    report = response.json()
    assert report["title"] == "Site inspection"
    assert report["description"] == "Site inspection description"
    assert len(report["images"]) == 2
    assert all(img["url"].startswith("https://") for img in report["images"])
    assert [img["format"] for img in report["images"]] == ["png", "jpg"]
    assert set(media_store.uploaded) == {img["public_id"] for img in report["images"]}


@pytest.mark.asyncio
async def test_create_report_without_images(client: TestClient, customer_token: str):
    response = create_report(client, customer_token, "Text only")
    assert response.status_code == status.HTTP_201_CREATED
    assert response.json()["images"] == []


@pytest.mark.asyncio
async def test_unsupported_extension_is_rejected_before_storing(client: TestClient, customer_token: str, media_store, png_bytes):
    response = create_report(
        client,
        customer_token,
        "Animated",
        files=[image("ok.png", png_bytes), image("funny.gif", b"GIF89a", "image/gif")],
    )
    assert response.status_code == status.HTTP_415_UNSUPPORTED_MEDIA_TYPE
    body = response.json()
    assert body["message"] == "Unsupported file type"
    assert "funny.gif" in body["error"]
    # Nothing was stored, not even the valid file
    assert media_store.uploaded == {}

    response = client.get("/api/reports", headers=auth_headers(customer_token))
    assert response.json()["items"] == []


@pytest.mark.asyncio
async def test_file_over_10mb_is_rejected(client: TestClient, customer_token: str, media_store):
    response = create_report(
        client,
        customer_token,
        "Huge scan",
        files=[image("scan.jpeg", b"\xff" * (10 * MB + 1), "image/jpeg")],
    )
    assert response.status_code == status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
    assert response.json()["message"] == "File too large"
    assert media_store.uploaded == {}


@pytest.mark.asyncio
async def test_file_of_exactly_10mb_is_accepted(client: TestClient, customer_token: str, media_store):
    response = create_report(
        client,
        customer_token,
        "Big scan",
        files=[image("scan.jpeg", b"\xff" * (10 * MB), "image/jpeg")],
    )
    assert response.status_code == status.HTTP_201_CREATED
    assert len(media_store.uploaded) == 1


@pytest.mark.asyncio
async def test_upload_requires_authentication(client: TestClient, media_store, png_bytes):
    response = client.post("/api/reports", data={"title": "Anonymous"}, files=[image("a.png", png_bytes)])
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert media_store.uploaded == {}


@pytest.mark.asyncio
async def test_reports_are_scoped_to_their_owner(client: TestClient, customer_token: str, admin_token: str):
    create_report(client, customer_token, "Customer report")
    create_report(client, admin_token, "Admin report")

    response = client.get("/api/reports", headers=auth_headers(customer_token))
    assert response.status_code == status.HTTP_200_OK
    assert [r["title"] for r in response.json()["items"]] == ["Customer report"]

    response = client.get("/api/reports", headers=auth_headers(admin_token))
    assert sorted(r["title"] for r in response.json()["items"]) == ["Admin report", "Customer report"]


@pytest.mark.asyncio
async def test_list_reports_is_paginated(client: TestClient, customer_token: str):
    for i in range(3):
        create_report(client, customer_token, f"Report {i}")

    response = client.get("/api/reports?page=2&size=2", headers=auth_headers(customer_token))
    data = response.json()
    assert data["page"] == 2
    assert data["size"] == 2
    assert len(data["items"]) == 1


@pytest.mark.asyncio
async def test_get_report_access_rules(client: TestClient, customer_token: str, admin_token: str):
    admin_report = create_report(client, admin_token, "Admin only").json()
    customer_report = create_report(client, customer_token, "Mine").json()

    response = client.get(f"/api/reports/{customer_report['public_id']}", headers=auth_headers(customer_token))
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["title"] == "Mine"

    response = client.get(f"/api/reports/{admin_report['public_id']}", headers=auth_headers(customer_token))
    assert response.status_code == status.HTTP_403_FORBIDDEN

    response = client.get(f"/api/reports/{customer_report['public_id']}", headers=auth_headers(admin_token))
    assert response.status_code == status.HTTP_200_OK

    response = client.get("/api/reports/missing", headers=auth_headers(admin_token))
    assert response.status_code == status.HTTP_404_NOT_FOUND


@pytest.mark.asyncio
async def test_delete_report_removes_its_images(client: TestClient, customer_token: str, media_store, png_bytes):
    report = create_report(
        client, customer_token, "Temporary", files=[image("one.png", png_bytes), image("two.jpg", png_bytes)]
    ).json()
    image_ids = [img["public_id"] for img in report["images"]]

    response = client.delete(f"/api/reports/{report['public_id']}", headers=auth_headers(customer_token))
    assert response.status_code == status.HTTP_204_NO_CONTENT
    assert media_store.destroyed == image_ids

    response = client.get(f"/api/reports/{report['public_id']}", headers=auth_headers(customer_token))
    assert response.status_code == status.HTTP_404_NOT_FOUND


@pytest.mark.asyncio
async def test_customer_cannot_delete_someone_elses_report(client: TestClient, customer_token: str, admin_token: str):
    report = create_report(client, admin_token, "Keep me").json()
    response = client.delete(f"/api/reports/{report['public_id']}", headers=auth_headers(customer_token))
    assert response.status_code == status.HTTP_403_FORBIDDEN

    response = client.get(f"/api/reports/{report['public_id']}", headers=auth_headers(admin_token))
    assert response.status_code == status.HTTP_200_OK
