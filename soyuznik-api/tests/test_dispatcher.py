from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from app.schemas.telegram import TelegramUpdate
from app.services.access_status import AccessStatus
from app.services.dispatcher import MSG_AI_ERROR, process_update
from app.services.onboarding import MSG_ASK_PERSONA, MSG_ASK_PRIORITY, MSG_DONE, MSG_WELCOME, OnboardingStep
from app.services.result import ACCESS_DENIED, AI_ERROR, DB_ERROR, USER_NOT_FOUND
from conftest import StubProvider, make_update_payload, make_user

MODULE = "app.services.dispatcher"


def _update(text=None, **message_fields):
    return TelegramUpdate(**make_update_payload(text, **message_fields))


def _sent_texts(telegram):
    return [c.kwargs["text"] for c in telegram.send_message.call_args_list]


@pytest.fixture
def db():
    return MagicMock()


class TestAccessChecks:
    def test_unknown_user(self, db, telegram):
        with patch(f"{MODULE}.get_user_by_chat_id", return_value=None):
            result = process_update(db, telegram, _update("Привет"))

        assert result.ok is False
        assert result.error_code == USER_NOT_FOUND
        texts = _sent_texts(telegram)
        assert len(texts) == 1
        assert "пользователь не найден" in texts[0]
        assert "@gpt_soyuznik_bot" in texts[0]

    def test_unpaid_user_start_is_denied(self, db, telegram):
        user = make_user(status="pending")
        with patch(f"{MODULE}.get_user_by_chat_id", return_value=user), patch(
            f"{MODULE}.start_onboarding"
        ) as mock_start:
            result = process_update(db, telegram, _update("/start"))

        assert result.error_code == ACCESS_DENIED
        mock_start.assert_not_called()
        assert "Доступ закрыт" in _sent_texts(telegram)[0]

    def test_new_user_is_denied(self, db, telegram):
        with patch(f"{MODULE}.get_user_by_chat_id", return_value=make_user(status="new")):
            result = process_update(db, telegram, _update("Привет"))

        assert result.error_code == ACCESS_DENIED

    def test_lookup_store_failure_is_silent(self, db, telegram):
        with patch(f"{MODULE}.get_user_by_chat_id", side_effect=OperationalError("SELECT", {}, Exception("down"))):
            result = process_update(db, telegram, _update("Привет"))

        assert result.error_code == DB_ERROR
        db.rollback.assert_called_once()
        telegram.send_message.assert_not_called()


class TestIgnoredMessages:
    def test_update_without_message(self, db, telegram):
        result = process_update(db, telegram, TelegramUpdate(update_id=7))
        assert result.ok is True
        assert result.value == "ignored"
        telegram.send_message.assert_not_called()

    def test_non_text_message(self, db, telegram):
        sticker = {"file_id": "s", "file_unique_id": "s"}
        with patch(f"{MODULE}.get_user_by_chat_id", return_value=make_user()):
            result = process_update(db, telegram, _update(sticker=sticker))

        assert result.value == "ignored"
        telegram.send_message.assert_not_called()

    def test_other_commands(self, db, telegram):
        with patch(f"{MODULE}.get_user_by_chat_id", return_value=make_user()), patch(
            f"{MODULE}.get_onboarding_state"
        ) as mock_state:
            result = process_update(db, telegram, _update("/help"))

        assert result.value == "ignored"
        mock_state.assert_not_called()
        telegram.send_message.assert_not_called()


class TestOnboarding:
    def test_start_creates_state(self, db, telegram):
        user = make_user(status="paid")
        with patch(f"{MODULE}.get_user_by_chat_id", return_value=user), patch(
            f"{MODULE}.start_onboarding"
        ) as mock_start:
            result = process_update(db, telegram, _update("/start"))

        assert result.ok is True
        mock_start.assert_called_once_with(db, user)
        db.commit.assert_called_once()
        assert _sent_texts(telegram) == [MSG_WELCOME]

    def test_start_with_payload(self, db, telegram):
        with patch(f"{MODULE}.get_user_by_chat_id", return_value=make_user(status="active")), patch(
            f"{MODULE}.start_onboarding"
        ) as mock_start:
            process_update(db, telegram, _update("/start from_site"))

        mock_start.assert_called_once()

    def test_step_one_stores_name(self, db, telegram):
        user = make_user()
        state = SimpleNamespace(step=1)
        with patch(f"{MODULE}.get_user_by_chat_id", return_value=user), patch(
            f"{MODULE}.get_onboarding_state", return_value=state
        ), patch(f"{MODULE}.update_user_fields") as mock_update, patch(
            f"{MODULE}.set_onboarding_step"
        ) as mock_step:
            result = process_update(db, telegram, _update("Аня"))

        assert result.value == "onboarding_step_2"
        mock_update.assert_called_once_with(db, user, custom_name="Аня")
        mock_step.assert_called_once_with(db, state, OnboardingStep.PERSONA)
        assert _sent_texts(telegram) == [MSG_ASK_PERSONA]

    def test_step_two_stores_persona(self, db, telegram):
        user = make_user()
        state = SimpleNamespace(step=2)
        with patch(f"{MODULE}.get_user_by_chat_id", return_value=user), patch(
            f"{MODULE}.get_onboarding_state", return_value=state
        ), patch(f"{MODULE}.update_user_fields") as mock_update, patch(
            f"{MODULE}.set_onboarding_step"
        ) as mock_step:
            process_update(db, telegram, _update("друг"))

        mock_update.assert_called_once_with(db, user, persona="друг")
        mock_step.assert_called_once_with(db, state, OnboardingStep.PRIORITY)
        assert _sent_texts(telegram) == [MSG_ASK_PRIORITY]

    def test_step_three_activates_and_clears_state(self, db, telegram):
        user = make_user(status="paid")
        state = SimpleNamespace(step=3)
        with patch(f"{MODULE}.get_user_by_chat_id", return_value=user), patch(
            f"{MODULE}.get_onboarding_state", return_value=state
        ), patch(f"{MODULE}.update_user_fields") as mock_update, patch(
            f"{MODULE}.set_user_status"
        ) as mock_status, patch(f"{MODULE}.finish_onboarding") as mock_finish:
            result = process_update(db, telegram, _update("спокойствие"))

        assert result.value == "onboarding_done"
        mock_update.assert_called_once_with(db, user, priority="спокойствие")
        mock_status.assert_called_once_with(db, user, AccessStatus.ACTIVE)
        mock_finish.assert_called_once_with(db, state)
        assert user.chat_started_at is not None
        assert _sent_texts(telegram) == [MSG_DONE]

    def test_unknown_step_takes_no_action(self, db, telegram):
        with patch(f"{MODULE}.get_user_by_chat_id", return_value=make_user()), patch(
            f"{MODULE}.get_onboarding_state", return_value=SimpleNamespace(step=7)
        ), patch(f"{MODULE}.update_user_fields") as mock_update:
            result = process_update(db, telegram, _update("текст"))

        assert result.value == "ignored"
        mock_update.assert_not_called()
        telegram.send_message.assert_not_called()

    def test_step_write_failure_is_silent(self, db, telegram):
        db.commit.side_effect = OperationalError("UPDATE", {}, Exception("down"))
        with patch(f"{MODULE}.get_user_by_chat_id", return_value=make_user()), patch(
            f"{MODULE}.get_onboarding_state", return_value=SimpleNamespace(step=1)
        ), patch(f"{MODULE}.update_user_fields"), patch(f"{MODULE}.set_onboarding_step"):
            result = process_update(db, telegram, _update("Аня"))

        assert result.error_code == DB_ERROR
        db.rollback.assert_called_once()
        telegram.send_message.assert_not_called()


class TestFreeChat:
    def test_recall_uses_stored_name_without_provider(self, db, telegram):
        provider = StubProvider()
        user = make_user(status="active", custom_name="Аня")
        with patch(f"{MODULE}.get_user_by_chat_id", return_value=user), patch(
            f"{MODULE}.get_onboarding_state", return_value=None
        ), patch(f"{MODULE}.append_turn") as mock_append:
            result = process_update(db, telegram, _update("Как меня зовут?"), provider=provider)

        assert result.value == "recall_reply"
        assert "Аня" in _sent_texts(telegram)[0]
        assert provider.calls == []
        mock_append.assert_not_called()

    def test_chat_reply_is_relayed_and_stored(self, db, telegram):
        provider = StubProvider(reply="Я рядом")
        history = [{"role": "user", "content": "Мне грустно"}]
        with patch(f"{MODULE}.get_user_by_chat_id", return_value=make_user(status="active")), patch(
            f"{MODULE}.get_onboarding_state", return_value=None
        ), patch(f"{MODULE}.append_turn") as mock_append, patch(
            f"{MODULE}.get_recent_turns", return_value=history
        ), patch(f"{MODULE}.get_last_summary", return_value="говорили о работе"):
            result = process_update(db, telegram, _update("Мне грустно"), provider=provider)

        assert result.value == "chat_reply"
        assert _sent_texts(telegram) == ["Я рядом"]
        assert [c.args[2:] for c in mock_append.call_args_list] == [
            ("user", "Мне грустно"),
            ("assistant", "Я рядом"),
        ]
        messages = provider.calls[0]["messages"]
        assert messages[0]["role"] == "system"
        assert "говорили о работе" in messages[0]["content"]
        assert messages[1:] == history

    def test_paid_user_without_state_goes_to_chat(self, db, telegram):
        provider = StubProvider(reply="Привет!")
        with patch(f"{MODULE}.get_user_by_chat_id", return_value=make_user(status="paid")), patch(
            f"{MODULE}.get_onboarding_state", return_value=None
        ), patch(f"{MODULE}.append_turn"), patch(f"{MODULE}.get_recent_turns", return_value=[]), patch(
            f"{MODULE}.get_last_summary", return_value=None
        ):
            result = process_update(db, telegram, _update("Привет"), provider=provider)

        assert result.value == "chat_reply"
        assert len(provider.calls) == 1

    def test_provider_failure_sends_apology(self, db, telegram):
        provider = StubProvider(error="timeout")
        with patch(f"{MODULE}.get_user_by_chat_id", return_value=make_user(status="active")), patch(
            f"{MODULE}.get_onboarding_state", return_value=None
        ), patch(f"{MODULE}.append_turn") as mock_append, patch(
            f"{MODULE}.get_recent_turns", return_value=[]
        ), patch(f"{MODULE}.get_last_summary", return_value=None):
            result = process_update(db, telegram, _update("Привет"), provider=provider)

        assert result.error_code == AI_ERROR
        assert _sent_texts(telegram) == [MSG_AI_ERROR]
        assert mock_append.call_count == 1

    def test_history_write_failure_is_silent(self, db, telegram):
        provider = StubProvider()
        with patch(f"{MODULE}.get_user_by_chat_id", return_value=make_user(status="active")), patch(
            f"{MODULE}.get_onboarding_state", return_value=None
        ), patch(f"{MODULE}.append_turn", side_effect=OperationalError("INSERT", {}, Exception("down"))):
            result = process_update(db, telegram, _update("Привет"), provider=provider)

        assert result.error_code == DB_ERROR
        assert provider.calls == []
        telegram.send_message.assert_not_called()

    def test_undelivered_reply(self, db, telegram):
        telegram.send_message.return_value = {"ok": False, "error": "blocked"}
        with patch(f"{MODULE}.get_user_by_chat_id", return_value=make_user(status="active")), patch(
            f"{MODULE}.get_onboarding_state", return_value=None
        ), patch(f"{MODULE}.append_turn"), patch(f"{MODULE}.get_recent_turns", return_value=[]), patch(
            f"{MODULE}.get_last_summary", return_value=None
        ):
            result = process_update(db, telegram, _update("Привет"), provider=StubProvider())

        assert result.ok is False
        assert result.error_code == "send_error"


class TestPhotos:
    PHOTO = [
        {"file_id": "small", "file_unique_id": "a", "width": 90, "height": 90},
        {"file_id": "big", "file_unique_id": "b", "width": 1280, "height": 1280},
    ]

    def test_photo_is_described(self, db, telegram):
        telegram.get_file_url.return_value = "https://api.telegram.org/file/botTOKEN/photos/1.jpg"
        provider = StubProvider(reply="Кот на подоконнике")
        with patch(f"{MODULE}.get_user_by_chat_id", return_value=make_user(status="active")), patch(
            f"{MODULE}.append_turn"
        ) as mock_append, patch(f"{MODULE}.get_recent_turns", return_value=[]), patch(
            f"{MODULE}.get_last_summary", return_value=None
        ):
            result = process_update(db, telegram, _update(photo=self.PHOTO), provider=provider)

        assert result.value == "image_description"
        telegram.get_file_url.assert_called_once_with("big")
        assert _sent_texts(telegram) == ["Описание изображения: Кот на подоконнике"]
        assert mock_append.call_count == 2
        image_turn = provider.calls[0]["messages"][-1]
        assert image_turn["content"][1]["image_url"]["url"].endswith("photos/1.jpg")

    def test_photo_from_unpaid_user(self, db, telegram):
        with patch(f"{MODULE}.get_user_by_chat_id", return_value=make_user(status="new")):
            result = process_update(db, telegram, _update(photo=self.PHOTO))

        assert result.error_code == ACCESS_DENIED
        telegram.get_file_url.assert_not_called()

    def test_unresolved_file(self, db, telegram):
        telegram.get_file_url.return_value = None
        provider = StubProvider()
        with patch(f"{MODULE}.get_user_by_chat_id", return_value=make_user(status="active")):
            result = process_update(db, telegram, _update(photo=self.PHOTO), provider=provider)

        assert result.ok is False
        assert provider.calls == []
        assert _sent_texts(telegram) == [MSG_AI_ERROR]


class TestOnboardingFlow:
    def test_full_sequence_then_recall(self, db, telegram):
        user = make_user(status="paid")
        holder = {"state": None}
        steps_seen = []

        def start(db, u):
            holder["state"] = SimpleNamespace(user_id=u.id, step=OnboardingStep.NAME.value, updated_at=None)

        def finish(db, state):
            holder["state"] = None

        provider = StubProvider(reply="не должен понадобиться")
        with patch(f"{MODULE}.get_user_by_chat_id", return_value=user), patch(
            f"{MODULE}.get_onboarding_state", side_effect=lambda db, u: holder["state"]
        ), patch(f"{MODULE}.start_onboarding", side_effect=start), patch(
            f"{MODULE}.finish_onboarding", side_effect=finish
        ):
            process_update(db, telegram, _update("/start"), provider=provider)
            for answer in ("Аня", "друг", "спокойствие"):
                steps_seen.append(holder["state"].step)
                process_update(db, telegram, _update(answer), provider=provider)
            result = process_update(db, telegram, _update("Как меня зовут?"), provider=provider)

        assert steps_seen == [1, 2, 3]
        assert holder["state"] is None
        assert (user.custom_name, user.persona, user.priority) == ("Аня", "друг", "спокойствие")
        assert user.status == "active"
        assert user.chat_started_at is not None
        assert result.ok is True
        texts = _sent_texts(telegram)
        assert texts[:4] == [MSG_WELCOME, MSG_ASK_PERSONA, MSG_ASK_PRIORITY, MSG_DONE]
        assert texts[4] == "Вас зовут Аня 😊"
        assert provider.calls == []
