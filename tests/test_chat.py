from types import SimpleNamespace

from forge.pipelines.chat import MAX_HISTORY_MESSAGES, build_chat_messages


def history(count):
    return [
        SimpleNamespace(role="user" if i % 2 else "assistant", content=f"message {i}")
        for i in range(1, count + 1)
    ]


def test_chat_history_is_windowed_to_recent_messages():
    messages = build_chat_messages("Backend engineer", history(25), "What next?")

    assert len(messages) == 1 + MAX_HISTORY_MESSAGES + 1
    assert messages[0][0] == "system"
    assert "Backend engineer" in messages[0][1]
    assert messages[1] == ("ai", "message 6")
    assert messages[-2] == ("human", "message 25")
    assert messages[-1] == ("human", "What next?")


def test_chat_roles_and_empty_profile():
    messages = build_chat_messages("", history(2), "Hi")

    assert "No profile data yet." in messages[0][1]
    assert messages[1:] == [("human", "message 1"), ("ai", "message 2"), ("human", "Hi")]
