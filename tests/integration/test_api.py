"""Integration tests for the HTTP API against in-memory storage and mocked providers."""

from unittest.mock import patch

import pytest
from pydantic import SecretStr

from geoscore.auth.tokens import create_access_token
from geoscore.clients.base import APIError
from geoscore.clients.dataforseo import parse_serp_response

SIGNUP = {
    "firstName": "Grace",
    "lastName": "Hopper",
    "email": "grace@initech.com",
    "phone": "+15550100200",
    "password": "cobol-forever",
}


def bearer(user, settings) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id, user.email, settings)}"}


class TestHealth:
    def test_health(self, api_client, user):
        response = api_client.get("/api/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["database"]["users"] == 1
        assert body["database"]["database_type"] == "sqlite"

    def test_integrations_requires_auth(self, api_client, auth_headers):
        assert api_client.get("/api/integrations").status_code == 401

        body = api_client.get("/api/integrations", headers=auth_headers).json()
        assert body["integrations"]["dataforseo"] is True
        assert set(body["llm_providers"]) == {"openai", "anthropic", "google"}


class TestAuthFlow:
    """Tests for sign-up, verification, login and logout over HTTP."""

    def test_signup_and_verify(self, api_client, repository, email_sender):
        """Test the full sign-up flow ends with auth cookies."""
        response = api_client.post("/api/auth/signup", json=SIGNUP)

        assert response.status_code == 201
        assert response.json() == {
            "message": "Account created. Please check your email for the verification code.",
            "email": "grace@initech.com",
            "needsVerification": True,
        }
        code = repository.get_user_by_email("grace@initech.com").verification_code
        email_sender.send_verification_code.assert_called_once_with("grace@initech.com", code)

        response = api_client.post("/api/auth/verify-email", json={"email": "grace@initech.com", "code": code})

        assert response.status_code == 200
        user = response.json()["user"]
        assert user["firstName"] == "Grace"
        assert user["onboardingStep"] == 1
        assert "auth_token" in response.cookies
        assert "session_token" in response.cookies

        me = api_client.get("/api/auth/me")
        assert me.status_code == 200
        assert me.json()["user"]["email"] == "grace@initech.com"

    def test_signup_validation(self, api_client):
        """Test malformed bodies answer 400 with details."""
        response = api_client.post("/api/auth/signup", json={**SIGNUP, "phone": "12345"})

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid request"
        assert response.json()["details"]

    def test_signup_existing_verified(self, api_client, user):
        response = api_client.post("/api/auth/signup", json={**SIGNUP, "email": user.email})

        assert response.status_code == 409
        assert response.json() == {"error": "An account with this email already exists"}

    def test_verify_wrong_code(self, api_client):
        api_client.post("/api/auth/signup", json=SIGNUP)

        response = api_client.post("/api/auth/verify-email", json={"email": SIGNUP["email"], "code": "000000"})

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid verification code"}

    def test_login_sets_cookies(self, api_client, repository, user):
        response = api_client.post(
            "/api/auth/login",
            json={"email": user.email, "password": "correct-horse-battery"},
            headers={"User-Agent": "pytest-browser"},
        )

        assert response.status_code == 200
        assert response.json()["user"]["id"] == user.id
        session = repository.get_user_session(response.cookies["session_token"])
        assert session.user_agent == "pytest-browser"
        assert session.ip_address == "testclient"

    def test_login_wrong_password(self, api_client, user):
        response = api_client.post("/api/auth/login", json={"email": user.email, "password": "nope"})

        assert response.status_code == 401
        assert response.json() == {"error": "Invalid email or password", "attempts_remaining": 1}

    def test_login_unverified(self, api_client, make_user):
        make_user(email="pending@acme.com", verified=False)

        response = api_client.post(
            "/api/auth/login", json={"email": "pending@acme.com", "password": "correct-horse-battery"}
        )

        assert response.status_code == 403
        assert response.json()["needs_verification"] is True

    def test_me_requires_auth(self, api_client):
        response = api_client.get("/api/auth/me")

        assert response.status_code == 401
        assert response.json() == {"error": "Not authenticated"}

    def test_me_rejects_bad_token(self, api_client):
        response = api_client.get("/api/auth/me", headers={"Authorization": "Bearer garbage"})

        assert response.status_code == 401

    def test_me_reports_stored_onboarding_step(self, api_client, settings, make_user):
        fresh = make_user(email="fresh@acme.com")
        restarted = make_user(email="restart@acme.com", onboarding_step=0)

        assert api_client.get("/api/auth/me", headers=bearer(fresh, settings)).json()["user"]["onboardingStep"] == 1
        response = api_client.get("/api/auth/me", headers=bearer(restarted, settings))

        assert response.json()["user"]["onboardingStep"] == 0

    def test_missing_token_is_a_security_event(self, api_client):
        with patch("geoscore.auth.dependencies.log_security_event") as log_event:
            api_client.get("/api/auth/me")

        log_event.assert_called_once_with("auth_missing_token", ip_address="testclient", path="/api/auth/me")

    def test_bad_token_is_a_security_event(self, api_client):
        with patch("geoscore.auth.dependencies.log_security_event") as log_event:
            api_client.get("/api/auth/me", headers={"Authorization": "Bearer garbage"})

        assert log_event.call_args.args == ("auth_invalid_session",)
        assert log_event.call_args.kwargs["ip_address"] == "testclient"
        assert log_event.call_args.kwargs["path"] == "/api/auth/me"

    def test_revoked_session_is_a_security_event(self, api_client, repository, user):
        login = api_client.post("/api/auth/login", json={"email": user.email, "password": "correct-horse-battery"})
        repository.revoke_user_session(login.cookies["session_token"], "test")

        with patch("geoscore.auth.dependencies.log_security_event") as log_event:
            response = api_client.get("/api/auth/me")

        assert response.status_code == 401
        log_event.assert_called_once_with(
            "auth_invalid_session_token", ip_address="testclient", path="/api/auth/me", user_id=user.id
        )

    def test_logout_revokes_session(self, api_client, repository, user):
        """Test logout clears cookies and revokes the server session."""
        login = api_client.post("/api/auth/login", json={"email": user.email, "password": "correct-horse-battery"})
        session_token = login.cookies["session_token"]

        response = api_client.post("/api/auth/logout")

        assert response.status_code == 200
        assert repository.get_user_session(session_token).is_active is False
        assert api_client.get("/api/auth/me").status_code == 401

    def test_logout_without_session(self, api_client):
        assert api_client.post("/api/auth/logout").status_code == 200

    def test_forgot_and_reset_password(self, api_client, repository, user):
        response = api_client.post("/api/auth/forgot-password", json={"email": user.email})
        assert response.status_code == 200
        code = repository.get_user(user.id).reset_code

        response = api_client.post(
            "/api/auth/reset-password",
            json={"email": user.email, "code": code, "newPassword": "new-horse-battery"},
        )
        assert response.status_code == 200

        login = api_client.post("/api/auth/login", json={"email": user.email, "password": "new-horse-battery"})
        assert login.status_code == 200

    def test_failed_auth_rate_limited(self, api_client):
        """Test the sixth failed auth request from one client is refused."""
        for _ in range(5):
            response = api_client.post("/api/auth/login", json={"email": "ghost@acme.com", "password": "x"})
            assert response.status_code == 401

        response = api_client.post("/api/auth/login", json={"email": "ghost@acme.com", "password": "x"})

        assert response.status_code == 429
        assert response.json()["error"] == "Too many requests"
        assert int(response.headers["Retry-After"]) > 0

    def test_forwarded_for_ignored_by_default(self, api_client):
        """Test a rotating X-Forwarded-For header does not dodge the limit."""
        statuses = [
            api_client.post(
                "/api/auth/login",
                json={"email": "ghost@acme.com", "password": "x"},
                headers={"X-Forwarded-For": f"198.51.100.{i}"},
            ).status_code
            for i in range(6)
        ]

        assert statuses == [401] * 5 + [429]

    def test_forwarded_for_used_behind_trusted_proxy(self, api_client, settings):
        settings.trust_proxy = True

        statuses = [
            api_client.post(
                "/api/auth/login",
                json={"email": "ghost@acme.com", "password": "x"},
                headers={"X-Forwarded-For": f"198.51.100.{i}, 10.0.0.1"},
            ).status_code
            for i in range(6)
        ]

        assert statuses == [401] * 6

    def test_successful_logins_not_rate_limited(self, api_client, user):
        for _ in range(7):
            response = api_client.post(
                "/api/auth/login", json={"email": user.email, "password": "correct-horse-battery"}
            )
            assert response.status_code == 200


class TestGoogleOAuthRoutes:
    def test_not_configured_redirects_to_signin(self, api_client):
        response = api_client.get("/api/auth/google", follow_redirects=False)

        assert response.status_code == 302
        assert response.headers["location"] == "/auth/signin"

    def test_redirect_sets_state(self, api_client, settings):
        settings.google_client_id = "client-id"
        settings.google_client_secret = SecretStr("client-secret")

        response = api_client.get("/api/login", follow_redirects=False)

        assert response.status_code == 302
        assert response.headers["location"].startswith("https://accounts.google.com/")
        assert "oauth_state" in response.cookies

    def test_callback_error(self, api_client):
        response = api_client.get("/api/auth/google/callback?error=access_denied", follow_redirects=False)

        assert response.headers["location"] == "/auth/login?error=google_auth_failed"

    def test_callback_state_mismatch(self, api_client):
        response = api_client.get(
            "/api/auth/google/callback?code=abc&state=forged", follow_redirects=False
        )

        assert response.headers["location"] == "/auth/login?error=invalid_state"


class TestBrands:
    """Tests for brand configuration endpoints."""

    def test_create_brand_normalizes_domain(self, api_client, auth_headers, user):
        response = api_client.post(
            "/api/brands",
            json={"name": "Initech", "domain": "https://www.Initech.com/about", "brand_variations": ["INTC"]},
            headers=auth_headers,
        )

        assert response.status_code == 201
        body = response.json()
        assert body["domain"] == "initech.com"
        assert body["user_id"] == user.id
        assert body["tier"] == "free"
        assert body["brand_variations"] == ["INTC"]

    def test_duplicate_domain(self, api_client, auth_headers, brand):
        response = api_client.post(
            "/api/brands", json={"name": "Acme again", "domain": "www.acme.com"}, headers=auth_headers
        )

        assert response.status_code == 409
        assert response.json() == {"error": "A brand with this domain already exists"}

    def test_list_only_own_brands(self, api_client, auth_headers, repository, brand, make_user):
        other = make_user(email="other@globex.com")
        repository.create_brand(user_id=other.id, name="Globex", domain="globex.com")

        response = api_client.get("/api/brands", headers=auth_headers)

        assert [b["id"] for b in response.json()] == [brand.id]

    def test_admin_sees_all_brands(self, api_client, settings, repository, brand, make_user):
        admin = make_user(email="admin@geoscore.in", is_admin=True)
        repository.create_brand(user_id=admin.id, name="Globex", domain="globex.com")

        response = api_client.get("/api/brands", headers=bearer(admin, settings))

        assert len(response.json()) == 2

    def test_other_users_brand_is_not_found(self, api_client, settings, brand, make_user):
        """Test another user's brand looks exactly like a missing one."""
        intruder = make_user(email="intruder@evil.com")

        response = api_client.get(f"/api/brands/{brand.id}", headers=bearer(intruder, settings))

        assert response.status_code == 404
        assert response.json() == {"error": "Brand not found"}

    def test_update_and_delete(self, api_client, auth_headers, repository, brand):
        response = api_client.patch(
            f"/api/brands/{brand.id}", json={"tier": "growth", "description": "CRM"}, headers=auth_headers
        )
        assert response.status_code == 200
        assert response.json()["tier"] == "growth"
        assert response.json()["name"] == "Acme"

        response = api_client.delete(f"/api/brands/{brand.id}", headers=auth_headers)
        assert response.status_code == 200
        assert repository.get_brand(brand.id) is None

    def test_invalid_tier(self, api_client, auth_headers, brand):
        response = api_client.patch(f"/api/brands/{brand.id}", json={"tier": "platinum"}, headers=auth_headers)

        assert response.status_code == 400

    def test_competitors(self, api_client, auth_headers, brand):
        url = f"/api/brands/{brand.id}/competitors"

        created = api_client.post(url, json={"name": "Globex", "domain": "http://globex.com"}, headers=auth_headers)
        assert created.status_code == 201
        assert created.json()["domain"] == "globex.com"

        assert len(api_client.get(url, headers=auth_headers).json()) == 1

        competitor_id = created.json()["id"]
        assert api_client.delete(f"{url}/{competitor_id}", headers=auth_headers).status_code == 200
        assert api_client.delete(f"{url}/{competitor_id}", headers=auth_headers).status_code == 404

    def test_topics_and_prompts(self, api_client, auth_headers, brand):
        """Test prompts can be filed under a topic of the same brand."""
        topic = api_client.post(
            f"/api/brands/{brand.id}/topics", json={"name": "CRM", "importance": "High"}, headers=auth_headers
        ).json()

        prompt = api_client.post(
            f"/api/brands/{brand.id}/prompts",
            json={"text": "Best CRM for startups?", "topic_id": topic["id"]},
            headers=auth_headers,
        )
        assert prompt.status_code == 201
        assert prompt.json()["status"] == "active"

        topics = api_client.get(f"/api/brands/{brand.id}/topics", headers=auth_headers).json()
        assert topics[0]["prompt_count"] == 1

        assert api_client.delete(f"/api/topics/{topic['id']}", headers=auth_headers).status_code == 200

    def test_prompt_with_foreign_topic(self, api_client, auth_headers, repository, brand, make_user):
        other = make_user(email="other@globex.com")
        other_brand = repository.create_brand(user_id=other.id, name="Globex", domain="globex.com")
        foreign_topic = repository.create_topic(other_brand.id, name="ERP")

        response = api_client.post(
            f"/api/brands/{brand.id}/prompts",
            json={"text": "Best ERP?", "topic_id": foreign_topic.id},
            headers=auth_headers,
        )

        assert response.status_code == 400

    def test_update_and_filter_prompts(self, api_client, auth_headers, brand, prompt):
        response = api_client.patch(f"/api/prompts/{prompt.id}", json={"status": "paused"}, headers=auth_headers)
        assert response.json()["status"] == "paused"

        active = api_client.get(f"/api/brands/{brand.id}/prompts?status=active", headers=auth_headers)
        assert active.json() == []

        assert api_client.delete(f"/api/prompts/{prompt.id}", headers=auth_headers).status_code == 200
        assert api_client.delete(f"/api/prompts/{prompt.id}", headers=auth_headers).status_code == 404


class TestJobs:
    """Tests for background job endpoints."""

    def test_sample_prompt(self, api_client, auth_headers, brand, competitor, prompt):
        """Test sampling is accepted, runs in the background and is queryable."""
        response = api_client.post(f"/api/prompts/{prompt.id}/sample", headers=auth_headers)

        assert response.status_code == 202
        accepted = response.json()
        assert accepted["status"] == "pending"
        assert accepted["message"] == "Sampling started for 3 providers"

        job = api_client.get(f"/api/jobs/{accepted['job_id']}", headers=auth_headers).json()
        assert job["type"] == "llm_sampling"
        assert job["status"] == "completed"
        assert len(job["result"]["results"]) == 3

        answers = api_client.get(f"/api/brands/{brand.id}/llm-answers", headers=auth_headers).json()
        assert len(answers) == 3
        assert {a["llm_provider"] for a in answers} == {"openai", "anthropic", "google"}

        mentions = api_client.get(
            f"/api/brands/{brand.id}/mentions?entity_type=competitor", headers=auth_headers
        ).json()
        assert {m["entity_name"] for m in mentions} == {"Globex"}

        runs = api_client.get(f"/api/brands/{brand.id}/prompt-runs", headers=auth_headers).json()
        assert runs[0]["status"] == "completed"

        latest = api_client.get(f"/api/brands/{brand.id}/visibility-scores/latest", headers=auth_headers)
        assert latest.json()["overall_score"] == 85

    def test_sample_selected_providers(self, api_client, auth_headers, mock_llm_client, prompt):
        response = api_client.post(
            f"/api/prompts/{prompt.id}/sample",
            json={"providers": ["anthropic"], "force": True},
            headers=auth_headers,
        )

        assert response.json()["message"] == "Sampling started for 1 providers"
        mock_llm_client.providers["anthropic"].chat.assert_awaited_once()
        mock_llm_client.providers["openai"].chat.assert_not_called()

    def test_sample_without_llm_providers(self, api_client, auth_headers, mock_llm_client, prompt):
        mock_llm_client.providers.clear()

        response = api_client.post(f"/api/prompts/{prompt.id}/sample", headers=auth_headers)

        assert response.status_code == 503

    def test_sample_unknown_prompt(self, api_client, auth_headers):
        response = api_client.post("/api/prompts/missing/sample", headers=auth_headers)

        assert response.status_code == 404
        assert response.json() == {"error": "Prompt not found"}

    def test_visibility_analysis(self, api_client, auth_headers, brand):
        response = api_client.post(
            f"/api/brands/{brand.id}/analyze/visibility", json={"period": "month"}, headers=auth_headers
        )

        assert response.status_code == 202
        job = api_client.get(f"/api/jobs/{response.json()['job_id']}", headers=auth_headers).json()
        assert job["status"] == "completed"
        assert job["params"] == {"brand_id": brand.id, "period": "month"}
        assert job["result"]["period"] == "month"

        scores = api_client.get(f"/api/brands/{brand.id}/visibility-scores?period=month", headers=auth_headers)
        assert len(scores.json()) == 1

    def test_latest_score_missing(self, api_client, auth_headers, brand):
        response = api_client.get(f"/api/brands/{brand.id}/visibility-scores/latest", headers=auth_headers)

        assert response.status_code == 404

    def test_serp_analysis(self, api_client, auth_headers, mock_serp_client, sample_serp_payload, brand, prompt):
        mock_serp_client.search_google.return_value = parse_serp_response(prompt.text, sample_serp_payload)

        response = api_client.post(
            f"/api/brands/{brand.id}/analyze/serp", json={"device": "mobile"}, headers=auth_headers
        )

        assert response.status_code == 202
        job = api_client.get(f"/api/jobs/{response.json()['job_id']}", headers=auth_headers).json()
        assert job["status"] == "completed"
        assert job["params"]["device"] == "mobile"
        assert job["result"]["samples_collected"] == 1

        samples = api_client.get(f"/api/brands/{brand.id}/serp-samples", headers=auth_headers).json()
        assert samples[0]["brand_position"] == 2
        assert samples[0]["device"] == "mobile"
        assert samples[0]["metadata"]["paa_count"] == 1

    def test_serp_analysis_not_configured(self, api_client, auth_headers, integrations, brand):
        integrations.dataforseo = None
        integrations.serpapi = None

        response = api_client.post(f"/api/brands/{brand.id}/analyze/serp", headers=auth_headers)

        assert response.status_code == 503

    def test_serp_prompt_of_other_brand(self, api_client, auth_headers, brand, make_user, repository):
        other = make_user(email="other@globex.com")
        other_brand = repository.create_brand(user_id=other.id, name="Globex", domain="globex.com")
        other_prompt = repository.create_prompt(other_brand.id, text="crm?")

        response = api_client.post(
            f"/api/brands/{brand.id}/analyze/serp", json={"prompt_id": other_prompt.id}, headers=auth_headers
        )

        assert response.status_code == 404

    def test_job_of_other_user_hidden(self, api_client, auth_headers, settings, brand, make_user):
        response = api_client.post(f"/api/brands/{brand.id}/analyze/visibility", headers=auth_headers)
        intruder = make_user(email="intruder@evil.com")

        job = api_client.get(f"/api/jobs/{response.json()['job_id']}", headers=bearer(intruder, settings))

        assert job.status_code == 404

    def test_unknown_job(self, api_client, auth_headers):
        response = api_client.get("/api/jobs/nope", headers=auth_headers)

        assert response.status_code == 404
        assert response.json() == {"error": "Job not found"}

    def test_job_rate_limit(self, api_client, auth_headers, brand):
        """Test job triggers are limited per client per minute."""
        url = f"/api/brands/{brand.id}/analyze/visibility"
        statuses = [api_client.post(url, headers=auth_headers).status_code for _ in range(11)]

        assert statuses == [202] * 10 + [429]


class TestSerpSearch:
    def test_search(self, api_client, auth_headers, mock_serp_client, sample_serp_payload):
        mock_serp_client.search_google.return_value = parse_serp_response("best crm", sample_serp_payload)

        response = api_client.post("/api/serp/search", json={"query": "best crm", "limit": 20}, headers=auth_headers)

        assert response.status_code == 200
        assert [r["domain"] for r in response.json()["results"]] == ["www.globex.com", "acme.com"]
        mock_serp_client.search_google.assert_awaited_once_with("best crm", location="United States", limit=20)

    def test_provider_error(self, api_client, auth_headers, mock_serp_client):
        mock_serp_client.search_google.side_effect = APIError("quota exhausted", status_code=402)

        response = api_client.post("/api/serp/search", json={"query": "best crm"}, headers=auth_headers)

        assert response.status_code == 502
        assert "quota exhausted" in response.json()["error"]

    def test_not_configured(self, api_client, auth_headers, integrations):
        integrations.dataforseo = None

        response = api_client.post("/api/serp/search", json={"query": "best crm"}, headers=auth_headers)

        assert response.status_code == 503


class TestAdmin:
    def test_requires_admin(self, api_client, auth_headers):
        response = api_client.get("/api/admin/users", headers=auth_headers)

        assert response.status_code == 403
        assert response.json() == {"error": "Admin access required"}

    def test_denied_admin_is_a_security_event(self, api_client, auth_headers, user):
        with patch("geoscore.auth.dependencies.log_security_event") as log_event:
            api_client.get("/api/admin/users", headers=auth_headers)

        log_event.assert_called_once_with(
            "admin_access_denied", ip_address="testclient", path="/api/admin/users", user_id=user.id
        )

    def test_lists_users(self, api_client, settings, user, make_user):
        admin = make_user(email="admin@geoscore.in", is_admin=True)

        response = api_client.get("/api/admin/users", headers=bearer(admin, settings))

        assert response.status_code == 200
        assert response.json()["count"] == 2
        assert {u["email"] for u in response.json()["users"]} == {user.email, admin.email}


@pytest.mark.parametrize("path", ["/api/brands", "/api/admin/users", "/api/jobs/x"])
def test_protected_routes_require_auth(api_client, path):
    assert api_client.get(path).status_code == 401
