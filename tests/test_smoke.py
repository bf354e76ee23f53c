from conftest import login


def test_health_ok(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json["ok"] is True


def test_public_index_renders(client):
    r = client.get("/")
    assert r.status_code == 200
    assert b"GigsTM" in r.data


def test_anonymous_is_sent_to_signin(client):
    r = client.get("/admin/", follow_redirects=False)
    assert r.status_code == 302
    assert "/auth/admin/signin" in r.headers["Location"]

    r = client.get("/gigs/", follow_redirects=False)
    assert r.status_code == 302
    assert "/auth/signin" in r.headers["Location"]


def test_unknown_page_is_404(client):
    r = client.get("/no-such-page")
    assert r.status_code == 404


def test_admin_login_and_access(client, users):
    r = login(client, "admin@example.com", staff=True)
    assert r.status_code == 302
    assert r.headers["Location"].endswith("/admin/")

    r = client.get("/admin/")
    assert r.status_code == 200


def test_worker_pages_render(client, users):
    login(client, "worker@example.com")
    for path in (
        "/gigs/",
        "/applications/",
        "/wallet",
        "/kyc",
        "/notifications",
        "/messages",
        "/support/",
        "/announcements",
        "/profile/",
        "/profile/referrals",
        "/disputes/",
    ):
        r = client.get(path)
        assert r.status_code == 200, path


def test_worker_cannot_open_staff_pages(client, users):
    login(client, "worker@example.com")
    for path in ("/admin/", "/manager/", "/admin/payouts", "/admin/kyc", "/disputes/queue"):
        r = client.get(path)
        assert r.status_code == 403, path
