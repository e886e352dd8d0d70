from app.services.result import ACCESS_DENIED, AI_ERROR, DB_ERROR, SEND_ERROR, USER_NOT_FOUND, Result


class TestResultSuccess:
    def test_success_creates_ok_result(self):
        result = Result.success("chat_reply")
        assert result.ok is True
        assert result.value == "chat_reply"
        assert result.error is None

    def test_success_with_different_types(self):
        int_result = Result.success(42)
        assert int_result.value == 42

        dict_result = Result.success({"key": "value"})
        assert dict_result.value == {"key": "value"}


class TestResultFailure:
    def test_failure_creates_not_ok_result(self):
        result = Result.failure("Something went wrong", "test_error")
        assert result.ok is False
        assert result.error == "Something went wrong"
        assert result.error_code == "test_error"
        assert result.value is None

    def test_failure_default_code(self):
        result = Result.failure("Error message")
        assert result.error_code == "unknown"


class TestErrorCodes:
    def test_codes_are_distinct(self):
        codes = {USER_NOT_FOUND, ACCESS_DENIED, DB_ERROR, AI_ERROR, SEND_ERROR}
        assert len(codes) == 5

    def test_user_not_found_code(self):
        result = Result.failure("Пользователь не найден", USER_NOT_FOUND)
        assert result.error_code == "user_not_found"

    def test_store_failure_flag(self):
        assert Result.failure("PostgreSQL недоступен", DB_ERROR).is_store_failure is True
        assert Result.failure("LLM не ответил", AI_ERROR).is_store_failure is False
        assert Result.success("ok").is_store_failure is False
