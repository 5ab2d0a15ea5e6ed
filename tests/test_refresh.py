from mauthn_client.session_data import Session

from .conftest import form_of


def test_refresh_without_refresh_token_goes_to_login(client, provider_stub, session_cookie):
    response = client.get("/refresh", headers=session_cookie(Session(access_token="A")),
                          follow_redirects=False)

    assert response.status_code == 302
    assert response.headers["location"] == "/login"
    assert provider_stub.requests == []


def test_refresh_keeps_refresh_token_when_provider_does_not_rotate(client, provider_stub, codec, session_cookie):
    provider_stub.on("POST", "/oauth/token", json={"access_token": "A2"})

    response = client.get("/refresh", headers=session_cookie(Session(access_token="A", refresh_token="R")),
                          follow_redirects=False)

    assert response.status_code == 302
    assert response.headers["location"] == "/profile"
    session = codec.decode(response.cookies["session"])
    assert session.access_token == "A2"
    assert session.refresh_token == "R"

    (token_request,) = provider_stub.requests
    assert form_of(token_request) == {
        "client_id": "test-client",
        "client_secret": "test-secret",
        "refresh_token": "R",
        "grant_type": "refresh_token",
    }


def test_refresh_stores_rotated_refresh_token(client, provider_stub, codec, session_cookie):
    provider_stub.on("POST", "/oauth/token", json={"access_token": "A2", "refresh_token": "R2"})

    response = client.get("/refresh", headers=session_cookie(Session(access_token="A", refresh_token="R")),
                          follow_redirects=False)

    session = codec.decode(response.cookies["session"])
    assert (session.access_token, session.refresh_token) == ("A2", "R2")


def test_refresh_failure_falls_back_to_login(client, provider_stub, session_cookie):
    provider_stub.on("POST", "/oauth/token", status_code=400, text='{"error":"invalid_grant"}')

    response = client.get("/refresh", headers=session_cookie(Session(access_token="A", refresh_token="R")),
                          follow_redirects=False)

    assert response.status_code == 302
    assert response.headers["location"] == "/login"
    assert "set-cookie" not in response.headers


def test_refresh_timeout_falls_back_to_login(client, provider_stub, session_cookie):
    provider_stub.raise_on("POST", "/oauth/token")

    response = client.get("/refresh", headers=session_cookie(Session(access_token="A", refresh_token="R")),
                          follow_redirects=False)

    assert response.status_code == 302
    assert response.headers["location"] == "/login"


def test_refresh_accepts_token_body_with_unusual_extra_fields(client, provider_stub, codec, session_cookie):
    provider_stub.on("POST", "/oauth/token", json={"access_token": "A2", "expires_in": "3600s", "token_type": None})

    response = client.get("/refresh", headers=session_cookie(Session(access_token="A", refresh_token="R")),
                          follow_redirects=False)

    assert response.status_code == 302
    assert response.headers["location"] == "/profile"
    session = codec.decode(response.cookies["session"])
    assert (session.access_token, session.refresh_token) == ("A2", "R")
