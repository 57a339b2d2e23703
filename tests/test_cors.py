from video_bridge.cors import cors_headers, resolve_origin

ALLOWED = ["https://app.example.com"]


def test_allow_listed_origin_is_reflected():
    assert resolve_origin("https://app.example.com", ALLOWED) == "https://app.example.com"


def test_localhost_origin_is_reflected():
    assert resolve_origin("http://localhost:3000", ALLOWED) == "http://localhost:3000"


def test_unknown_or_missing_origin_gets_wildcard():
    assert resolve_origin("https://evil.example", ALLOWED) == "*"
    assert resolve_origin(None, ALLOWED) == "*"
    assert resolve_origin("", ALLOWED) == "*"


def test_headers_always_advertise_methods_and_auth_header():
    for origin in ("https://app.example.com", "https://other.example", None):
        headers = cors_headers(origin, ALLOWED)
        assert headers["Access-Control-Allow-Methods"] == "GET, POST, OPTIONS"
        assert "x-bridge-auth" in headers["Access-Control-Allow-Headers"]


def test_credentials_only_with_reflected_origin():
    assert cors_headers("https://app.example.com", ALLOWED)["Access-Control-Allow-Credentials"] == "true"
    assert "Access-Control-Allow-Credentials" not in cors_headers("https://other.example", ALLOWED)
