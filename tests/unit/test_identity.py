from app.services.identity import Identity, identity_from_headers


def test_missing_user_header_means_anonymous() -> None:
    assert identity_from_headers({}) is None
    assert identity_from_headers({"X-User-Id": "   "}) is None


def test_identity_from_proxy_headers() -> None:
    identity = identity_from_headers({
        "X-User-Id": "u1",
        "X-User-Email": "asha@example.com",
        "X-User-Name": "Asha",
    })
    assert identity == Identity(user_id="u1", email="asha@example.com", name="Asha", is_admin=False)


def test_admin_flag_values() -> None:
    for value in ("true", "1", "YES", "on"):
        assert identity_from_headers({"X-User-Id": "a", "X-User-Admin": value}).is_admin
    for value in ("false", "0", "", "admin"):
        assert not identity_from_headers({"X-User-Id": "a", "X-User-Admin": value}).is_admin
