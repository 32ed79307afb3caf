"""Tests for /api/documents and /api/attachments"""
import io

import docx

from outreach.app.models.document import Document
from outreach.app.models.generated_email import EmailAttachment
from outreach.app.services.document_text import DOCX_MIME


def _upload(client, headers, content=b"Jane Doe\n\nResearch   interests: compilers", **form):
    return client.post(
        "/api/documents",
        headers=headers,
        files={"file": ("cv.txt", content, "text/plain")},
        data={"type": "CV", **form},
    )


def test_upload_and_list(client, auth_headers, upload_dir):
    r = _upload(client, auth_headers)
    assert r.status_code == 201
    doc = r.json()
    assert doc["name"] == "cv.txt"
    assert doc["type"] == "CV"
    assert doc["has_extracted_text"] is False
    assert len(list((upload_dir / "documents").iterdir())) == 1

    listing = client.get("/api/documents", headers=auth_headers).json()
    assert [d["id"] for d in listing] == [doc["id"]]


def test_upload_rejects_type(client, auth_headers):
    r = client.post(
        "/api/documents",
        headers=auth_headers,
        files={"file": ("x.png", b"\x89PNG", "image/png")},
    )
    assert r.status_code == 400


def test_upload_rejects_document_kind(client, auth_headers):
    assert _upload(client, auth_headers, type="PASSPORT").status_code == 400


def test_extract_and_view(client, auth_headers):
    doc_id = _upload(client, auth_headers).json()["id"]
    r = client.post(f"/api/documents/{doc_id}/extract", headers=auth_headers)
    assert r.status_code == 200
    assert r.json()["extracted_text"] == "Jane Doe Research interests: compilers"
    assert r.json()["has_extracted_text"] is True

    view = client.get(f"/api/documents/{doc_id}/view", headers=auth_headers)
    assert view.status_code == 200
    assert view.content.startswith(b"Jane Doe")
    assert view.headers["content-disposition"].startswith("inline")


def _docx_bytes(*paragraphs) -> bytes:
    doc = docx.Document()
    for text in paragraphs:
        doc.add_paragraph(text)
    table = doc.add_table(rows=1, cols=1)
    table.cell(0, 0).text = "Python, Rust"
    buf = io.BytesIO()
    doc.save(buf)
    return buf.getvalue()


def test_extract_docx(client, auth_headers):
    content = _docx_bytes("Experienced software engineer", "based in   Berlin")
    r = client.post(
        "/api/documents",
        headers=auth_headers,
        files={"file": ("cv.docx", content, DOCX_MIME)},
        data={"type": "CV"},
    )
    assert r.status_code == 201
    r = client.post(f"/api/documents/{r.json()['id']}/extract", headers=auth_headers)
    assert r.status_code == 200
    assert r.json()["extracted_text"] == "Experienced software engineer based in Berlin Python, Rust"


def test_extract_legacy_doc_is_refused(client, auth_headers):
    r = client.post(
        "/api/documents",
        headers=auth_headers,
        files={"file": ("cv.doc", b"\xd0\xcf\x11\xe0binary", "application/msword")},
        data={"type": "CV"},
    )
    assert r.status_code == 201
    r = client.post(f"/api/documents/{r.json()['id']}/extract", headers=auth_headers)
    assert r.status_code == 400
    assert ".doc" in r.json()["detail"]


def test_extract_empty_document(client, auth_headers):
    doc_id = _upload(client, auth_headers, content=b"   \n ").json()["id"]
    r = client.post(f"/api/documents/{doc_id}/extract", headers=auth_headers)
    assert r.status_code == 400


def test_rename_document(client, auth_headers):
    doc_id = _upload(client, auth_headers).json()["id"]
    r = client.put(f"/api/documents/{doc_id}", headers=auth_headers, json={"name": "My CV", "type": "other"})
    assert r.status_code == 200
    assert r.json()["name"] == "My CV"
    assert r.json()["type"] == "OTHER"


def test_documents_are_private(client, auth_headers, other_headers):
    doc_id = _upload(client, auth_headers).json()["id"]
    assert client.get(f"/api/documents/{doc_id}", headers=other_headers).status_code == 404
    assert client.get(f"/api/documents/{doc_id}/view", headers=other_headers).status_code == 404
    assert client.delete(f"/api/documents/{doc_id}", headers=other_headers).status_code == 404


def test_delete_removes_file(client, auth_headers, db_session, upload_dir):
    doc_id = _upload(client, auth_headers).json()["id"]
    r = client.delete(f"/api/documents/{doc_id}", headers=auth_headers)
    assert r.json() == {"success": True}
    assert db_session.query(Document).count() == 0
    assert list((upload_dir / "documents").iterdir()) == []


def test_attachment_upload_download_delete(client, auth_headers, other_headers, db_session):
    r = client.post(
        "/api/attachments/upload",
        headers=auth_headers,
        files={"file": ("notes.csv", b"a,b\n1,2\n", "text/csv")},
    )
    assert r.status_code == 201
    att = r.json()
    assert att["original_name"] == "notes.csv"
    assert att["email_id"] is None

    assert client.get(f"/api/attachments/{att['id']}", headers=other_headers).status_code == 404
    download = client.get(f"/api/attachments/{att['id']}", headers=auth_headers)
    assert download.content == b"a,b\n1,2\n"

    assert client.delete(f"/api/attachments/{att['id']}", headers=auth_headers).status_code == 200
    assert db_session.query(EmailAttachment).count() == 0
