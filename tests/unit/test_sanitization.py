from utils.logger import sanitize_log_data, REDACTED

def test_password_redaction():
    data = {"email": "user@example.com", "password": "supersecret123"}
    sanitized = sanitize_log_data(data)

    assert sanitized["email"] == "user@example.com"
    assert sanitized["password"] == REDACTED


def test_token_fully_redacted():
    data = {"token": "AbC123dEf456GhI7", "token_hash": "a" * 64}
    sanitized = sanitize_log_data(data)

    assert sanitized["token"] == REDACTED
    assert sanitized["token_hash"] == REDACTED
    assert "AbC1" not in str(sanitized)


def test_nested_dict_sanitization():
    data = {
        "query": {
            "token": "AbC123dEf456GhI7",
            "page": "2"
        }
    }
    sanitized = sanitize_log_data(data)

    assert sanitized["query"]["page"] == "2"
    assert sanitized["query"]["token"] == REDACTED


def test_non_sensitive_data_unchanged():
    data = {"user_id": 123, "error_code": "EXPIRED", "session": None}
    sanitized = sanitize_log_data(data)

    assert sanitized == data


def test_input_not_mutated():
    data = {"token": "AbC123dEf456GhI7"}
    sanitize_log_data(data)

    assert data["token"] == "AbC123dEf456GhI7"
