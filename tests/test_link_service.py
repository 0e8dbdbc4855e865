from datetime import timedelta
from urllib.parse import parse_qs, urlsplit

import pytest

from errors import DocumentNotFound, PublishedDocumentError, RandomnessFailure, UnshareableDocument
from link_service import DEFAULT_TTL_DAYS, build_share_path, coerce_ttl_days
from link_store import ShareLinkStore


@pytest.mark.parametrize("choice, expected", [
    (1, 1), (3, 3), (7, 7), (14, 14), (30, 30), (0, 0),
    ("never", 0), ("Never", 0), ("14", 14), ("1 day", 1), ("30 days", 30),
    (2, DEFAULT_TTL_DAYS), (-1, DEFAULT_TTL_DAYS), (365, DEFAULT_TTL_DAYS),
    ("soon", DEFAULT_TTL_DAYS), (None, DEFAULT_TTL_DAYS), (True, DEFAULT_TTL_DAYS),
    (14.0, 14), (2.5, DEFAULT_TTL_DAYS), (float("inf"), DEFAULT_TTL_DAYS), (float("nan"), DEFAULT_TTL_DAYS),
    ([7], DEFAULT_TTL_DAYS), ({"days": 7}, DEFAULT_TTL_DAYS),
])
def test_coerce_ttl_days(choice, expected):
    assert coerce_ttl_days(choice) == expected


def test_no_link_means_no_url(service, make_document):
    document = make_document()
    assert service.current_url(document.id) is None
    assert service.link_status(document.id).enabled is False


def test_issue_builds_versioned_share_url(service, make_document, clock):
    document = make_document()
    issued = service.issue(document.id, "7 days")

    parts = urlsplit(service.current_url(document.id))
    assert parts.path == f"/pds/{document.id}/{issued.token}"
    assert parse_qs(parts.query) == {"v": [str(int(clock().timestamp()))]}
    assert issued.url == service.current_url(document.id)
    assert issued.expires_at == clock() + timedelta(days=7)


def test_store_keeps_one_record_per_document(db, service, make_document):
    document = make_document()
    first = service.issue(document.id, 1)
    second = service.issue(document.id, 30)

    record = ShareLinkStore(db).get(document.id)
    assert record.token == second.token != first.token
    assert record.expires_at == second.expires_at


def test_never_expiring_link_stays_live(service, make_document, clock):
    document = make_document()
    issued = service.issue(document.id, "never")
    assert issued.expires_at is None

    clock.advance(days=3650)
    assert service.current_url(document.id) is not None
    assert service.link_status(document.id).expires_label == "Never"


def test_current_url_disappears_after_expiry(service, make_document, clock):
    document = make_document()
    service.issue(document.id, 1)
    clock.advance(hours=25)
    assert service.current_url(document.id) is None


def test_issue_refuses_published_documents(service, make_document):
    document = make_document(status="publish")
    with pytest.raises(PublishedDocumentError):
        service.issue(document.id, 7)
    assert service.current_url(document.id) is None


def test_issue_refuses_attachments_and_revisions(service, make_document):
    draft = make_document()
    attachment = make_document(post_type="attachment")
    revision = make_document(post_type="revision", parent_id=draft.id)
    for document in (attachment, revision):
        with pytest.raises(UnshareableDocument):
            service.issue(document.id, 7)
        assert service.store.get(document.id) is None


def test_issue_unknown_document(service):
    with pytest.raises(DocumentNotFound):
        service.issue(9999, 7)


def test_randomness_failure_leaves_previous_link_untouched(db, service, make_document):
    document = make_document()
    issued = service.issue(document.id, 7)

    def broken():
        raise RandomnessFailure("no entropy")

    service.token_factory = broken
    with pytest.raises(RandomnessFailure):
        service.issue(document.id, 7)
    assert ShareLinkStore(db).get(document.id).token == issued.token


def test_rotation_purges_previous_url(service, make_document, purge_backend):
    document = make_document()
    service.issue(document.id, 7)
    old_url = service.current_url(document.id)

    service.issue(document.id, 7)
    assert old_url in purge_backend.purged
    assert urlsplit(old_url)._replace(query="").geturl() in purge_backend.purged


def test_first_issue_has_nothing_to_purge(service, make_document, purge_backend):
    document = make_document()
    service.issue(document.id, 7)
    assert purge_backend.purged == []


def test_revoke_clears_link_and_purges(service, make_document, purge_backend):
    document = make_document()
    service.issue(document.id, 7)
    url = service.current_url(document.id)

    service.revoke(document.id)
    assert service.current_url(document.id) is None
    assert url in purge_backend.purged


def test_revoke_is_idempotent(service, make_document):
    document = make_document()
    service.issue(document.id, 7)
    service.revoke(document.id)
    service.revoke(document.id)
    assert service.disable_link(document.id) == {"ok": True}


def test_purge_failure_does_not_roll_back(db, service, make_document, purge_backend):
    document = make_document()
    service.issue(document.id, 7)
    purge_backend.fail = True

    issued = service.issue(document.id, 7)
    assert ShareLinkStore(db).get(document.id).token == issued.token

    service.revoke(document.id)
    assert ShareLinkStore(db).get(document.id) is None


def test_issue_link_payload(service, make_document, clock):
    document = make_document()
    payload = service.issue_link(document.id, 3)
    assert payload["url"] == service.current_url(document.id)
    assert payload["expires_at"] == (clock() + timedelta(days=3)).isoformat()
    assert payload["expires_label"].endswith("UTC")

    never = service.issue_link(document.id, 0)
    assert never["expires_at"] is None
    assert never["expires_label"] == "Never"


def test_share_path_escapes_token():
    assert build_share_path(42, "abc-_XYZ") == "/pds/42/abc-_XYZ"
