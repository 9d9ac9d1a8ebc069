import json
import logging

from openapi_adapter.config import IntegrationEnvironment, Settings, load_integrations
from openapi_adapter.logging import configure_logging, mask_keys, redact_fields, redact_payload, scrub_values


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("ADAPTER_TRANSPORT", "http")
    monkeypatch.setenv("SENSITIVE_FIELDS", "account_.*, pan")
    monkeypatch.setenv("OPENAPI_FILES", "a.json,b.yaml")

    settings = Settings()

    assert settings.adapter_transport == "http"
    assert settings.sensitive_field_patterns() == ["account_.*", "pan"]
    assert settings.document_paths() == ["a.json", "b.yaml"]
    assert settings.masked_header_names() == ["x-client-id", "x-client-secret", "Authorization"]


def test_load_integrations_expands_environment_variables(tmp_path, monkeypatch):
    monkeypatch.setenv("PAYOUTS_SECRET", "s3cr3t-value")
    path = tmp_path / "integrations.yaml"
    path.write_text(
        "Payouts API - 2024-01-01:\n"
        "  sandbox_base_url: https://sandbox.example.com\n"
        "  production_base_url: https://api.example.com\n"
        "  header:\n"
        "    x-client-id: client-123\n"
        "  header.x-client-secret.API_KEY: ${PAYOUTS_SECRET}\n",
        encoding="utf-8",
    )

    integrations = load_integrations(str(path))

    environment = integrations["Payouts API - 2024-01-01"]
    assert environment.secret("header.x-client-secret.API_KEY") == "s3cr3t-value"
    assert environment.location("header") == {"x-client-id": "client-123"}
    assert environment.resolve_base_url("sandbox") == "https://sandbox.example.com"
    assert environment.resolve_base_url("production") == "https://api.example.com"


def test_load_integrations_json_and_missing_file(tmp_path):
    path = tmp_path / "integrations.json"
    path.write_text(json.dumps({"0": {"base_url": "https://api.example.com"}}), encoding="utf-8")

    assert load_integrations(str(path))["0"].resolve_base_url("production") == "https://api.example.com"
    assert load_integrations(str(tmp_path / "missing.json")) == {}
    assert load_integrations(None) == {}


def test_environment_defaults():
    environment = IntegrationEnvironment()

    assert environment.resolve_base_url("sandbox") is None
    assert environment.location("path") == {}
    assert environment.secret("header.x.API_KEY") is None
    assert not environment.requires_signature


def test_unreadable_key_path_is_tolerated(tmp_path):
    environment = IntegrationEnvironment(signing_public_key_path=str(tmp_path / "missing.pem"))

    assert environment.signing_public_key is None
    assert environment.requires_signature


def test_redact_fields_is_recursive():
    data = {
        "transfers": [{"beneficiary_instrument_details": {"ifsc": "X"}, "amount": 10}],
        "account_number": "123",
    }

    assert redact_fields(data, ["beneficiary_instrument_details", "account_.*"], "[MASKED]") == {
        "transfers": [{"beneficiary_instrument_details": "[MASKED]", "amount": 10}],
        "account_number": "[MASKED]",
    }
    assert redact_fields(data, [], "[MASKED]") is data


def test_mask_keys_is_case_insensitive():
    headers = {"X-Client-Id": "abc", "authorization": "", "accept": "application/json"}

    assert mask_keys(headers, ["x-client-id", "Authorization"], "[MASKED]") == {
        "X-Client-Id": "[MASKED]",
        "authorization": "",
        "accept": "application/json",
    }


def test_redact_payload_for_logs():
    payload = {"api_key": "k", "nested": {"client_secret": "s"}, "amount": 3}

    assert redact_payload(payload) == {
        "api_key": "***REDACTED***",
        "nested": {"client_secret": "***REDACTED***"},
        "amount": 3,
    }


def test_scrub_values_replaces_raw_and_encoded_forms():
    text = "GET https://api.example.com/r?api_key=a%2Fb%3D and a/b= again"

    assert scrub_values(text, ["a/b=", ""], "[MASKED]") == "GET https://api.example.com/r?api_key=[MASKED] and [MASKED] again"


def test_configure_logging_quiets_request_urls():
    configure_logging("INFO")

    assert logging.getLogger("httpx").level == logging.WARNING
