from app.services.result import Result


class TestResultSuccess:
    def test_success_creates_ok_result(self):
        result = Result.success("test value")
        assert result.ok is True
        assert result.value == "test value"
        assert result.error is None

    def test_success_keeps_status_code(self):
        result = Result.success(200, status_code=200)
        assert result.status_code == 200


class TestResultFailure:
    def test_failure_creates_not_ok_result(self):
        result = Result.failure("Something went wrong", "transient")
        assert result.ok is False
        assert result.error == "Something went wrong"
        assert result.error_code == "transient"
        assert result.value is None

    def test_failure_default_code(self):
        result = Result.failure("Error message")
        assert result.error_code == "unknown"


class TestResultHelpers:
    def test_unwrap_or_returns_value_on_success(self):
        assert Result.success("actual value").unwrap_or("default") == "actual value"

    def test_unwrap_or_returns_default_on_failure(self):
        assert Result.failure("Error", "code").unwrap_or("default") == "default"

    def test_has_code_matches_any_given_code(self):
        result = Result.failure("gone", "permanent", status_code=404)
        assert result.has_code("permanent", "not_configured") is True
        assert result.has_code("transient") is False

    def test_has_code_is_false_on_success(self):
        assert Result.success().has_code("permanent") is False
