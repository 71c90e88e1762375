from datetime import datetime, timezone

import pytest

pytestmark = pytest.mark.asyncio

CHATS = 'chats'


def at(minute):
    return datetime(2025, 9, 1, 12, minute, tzinfo=timezone.utc)


def seed_partnership(db, partnership_id, user_a, user_b, course="CS 3240", blocked_by=None):
    db.seed('partners', partnership_id, {
        'userA': user_a, 'userB': user_b, 'course': course,
        'userAName': f"Name {user_a}", 'userBName': f"Name {user_b}",
        'deleteRequestedBy': [], 'blockedBy': blocked_by or [],
    })


def seed_chat(db, chat_id, uid1, uid2, last_read=None):
    db.seed(CHATS, chat_id, {
        'participants': sorted([uid1, uid2]),
        'sharedCourses': ["CS 3240"],
        'lastReadBy': last_read or {},
    })


def seed_message(db, chat_id, message_id, sender, minute, text="hi"):
    db.seed(f"chats/{chat_id}/messages", message_id, {'senderId': sender, 'text': text, 'sentAt': at(minute)})


async def test_create_chat_requires_partnership(services):
    with pytest.raises(PermissionError):
        await services.chats.get_or_create_chat("alice", "bob")


async def test_create_chat_once_per_pair_with_system_message(services):
    seed_partnership(services.db, "p1", "alice", "bob")
    seed_partnership(services.db, "p2", "bob", "alice", course="MATH 3350")

    chat_id = await services.chats.get_or_create_chat("bob", "alice")
    same_id = await services.chats.get_or_create_chat("alice", "bob")

    assert chat_id == same_id
    chat = services.db.raw(CHATS, chat_id)
    assert chat['participants'] == ["alice", "bob"]
    assert chat['sharedCourses'] == ["CS 3240", "MATH 3350"]

    messages = await services.chats.get_messages(chat_id, "alice")
    assert len(messages) == 1
    assert messages[0]['senderId'] == "system"
    assert "CS 3240" in messages[0]['text']


async def test_send_message_validates_and_notifies(services):
    seed_chat(services.db, "c1", "alice", "bob")

    message = await services.chats.send_message("c1", "alice", "  see you at Clemons  ")

    assert message['text'] == "see you at Clemons"
    assert services.notifier.events == [('new_message', "c1", ["alice", "bob"])]

    with pytest.raises(ValueError, match="empty"):
        await services.chats.send_message("c1", "alice", "   ")
    with pytest.raises(PermissionError):
        await services.chats.send_message("c1", "mallory", "hello")
    with pytest.raises(ValueError, match="not found"):
        await services.chats.send_message("missing", "alice", "hello")


async def test_messages_are_oldest_first(services):
    seed_chat(services.db, "c1", "alice", "bob")
    seed_message(services.db, "c1", "m2", "bob", 5, "second")
    seed_message(services.db, "c1", "m1", "alice", 1, "first")

    messages = await services.chats.get_messages("c1", "bob")

    assert [m['text'] for m in messages] == ["first", "second"]


async def test_message_limit_keeps_latest_in_order(services):
    seed_chat(services.db, "c1", "alice", "bob")
    seed_message(services.db, "c1", "m1", "alice", 1, "first")
    seed_message(services.db, "c1", "m3", "alice", 9, "third")
    seed_message(services.db, "c1", "m2", "bob", 5, "second")

    messages = await services.chats.get_messages("c1", "bob", limit=2)

    assert [m['text'] for m in messages] == ["second", "third"]


async def test_unread_excludes_own_system_and_already_read(services):
    seed_chat(services.db, "c1", "alice", "bob", last_read={'alice': at(10)})
    seed_message(services.db, "c1", "m1", "bob", 5)
    seed_message(services.db, "c1", "m2", "bob", 15)
    seed_message(services.db, "c1", "m3", "alice", 16)
    seed_message(services.db, "c1", "m4", "system", 17)
    seed_message(services.db, "c1", "m5", "bob", 20)

    assert await services.chats.get_unread_count("c1", "alice") == 2


async def test_unread_without_read_marker_counts_all_from_partner(services):
    seed_chat(services.db, "c1", "alice", "bob")
    seed_message(services.db, "c1", "m1", "bob", 5)
    seed_message(services.db, "c1", "m2", "system", 6)

    assert await services.chats.get_unread_count("c1", "alice") == 1


async def test_mark_as_read_resets_count(services):
    seed_chat(services.db, "c1", "alice", "bob")
    seed_message(services.db, "c1", "m1", "bob", 5)

    await services.chats.mark_chat_as_read("c1", "alice")

    assert 'alice' in services.db.raw(CHATS, "c1")['lastReadBy']
    assert await services.chats.get_unread_count("c1", "alice") == 0
    assert ('chat_read', "c1", "alice") in services.notifier.events


async def test_total_unread_skips_blocked_partners(services):
    seed_partnership(services.db, "p1", "alice", "bob")
    seed_partnership(services.db, "p2", "alice", "carol", blocked_by=["alice"])
    seed_chat(services.db, "c1", "alice", "bob")
    seed_chat(services.db, "c2", "alice", "carol")
    seed_message(services.db, "c1", "m1", "bob", 1)
    seed_message(services.db, "c1", "m2", "bob", 2)
    seed_message(services.db, "c2", "m3", "carol", 3)
    seed_message(services.db, "c2", "m4", "alice", 4)

    assert await services.chats.get_total_unread_count("alice") == 2
    assert await services.chats.get_total_unread_count("carol") == 1


async def test_inbox_threads(services):
    services.db.seed('users', "bob", {'name': "Bob Jones"})
    seed_partnership(services.db, "p1", "alice", "bob")
    seed_partnership(services.db, "p2", "alice", "carol", blocked_by=["alice"])
    seed_chat(services.db, "c1", "alice", "bob")
    seed_chat(services.db, "c2", "alice", "carol")
    seed_message(services.db, "c1", "m1", "bob", 1, "first")
    seed_message(services.db, "c1", "m2", "bob", 2, "latest")

    threads = await services.chats.get_inbox_threads("alice")

    assert len(threads) == 1
    assert threads[0]['name'] == "Bob Jones"
    assert threads[0]['lastMessage'] == "latest"
    assert threads[0]['unreadCount'] == 2
    assert threads[0]['sharedCourses'] == ["CS 3240"]


async def test_inbox_thread_without_messages(services):
    seed_partnership(services.db, "p1", "alice", "bob")
    seed_chat(services.db, "c1", "alice", "bob")

    threads = await services.chats.get_inbox_threads("alice")

    assert threads[0]['lastMessage'] == "No messages yet"
    assert threads[0]['lastMessageAt'] is None


async def test_recent_messages_newest_from_others(services):
    seed_partnership(services.db, "p1", "alice", "bob")
    seed_partnership(services.db, "p2", "alice", "dave")
    seed_chat(services.db, "c1", "alice", "bob")
    seed_chat(services.db, "c2", "alice", "dave")
    seed_message(services.db, "c1", "m1", "bob", 1, "b1")
    seed_message(services.db, "c1", "m2", "alice", 9, "mine")
    seed_message(services.db, "c1", "m3", "system", 8, "sys")
    seed_message(services.db, "c2", "m4", "dave", 4, "d1")
    seed_message(services.db, "c2", "m5", "dave", 6, "d2")
    seed_message(services.db, "c1", "m6", "bob", 5, "b2")

    recent = await services.chats.get_recent_messages("alice", limit=3)

    assert [m['messageText'] for m in recent] == ["d2", "b2", "d1"]
    assert all(m['type'] == "message" for m in recent)


async def test_delete_chat_removes_messages(services):
    seed_chat(services.db, "c1", "alice", "bob")
    seed_message(services.db, "c1", "m1", "bob", 1)
    seed_message(services.db, "c1", "m2", "alice", 2)

    with pytest.raises(PermissionError):
        await services.chats.delete_chat("c1", "mallory")

    await services.chats.delete_chat("c1", "bob")

    assert services.db.raw(CHATS, "c1") is None
    assert services.db.collections["chats/c1/messages"] == {}
    assert ('chat_deleted', "c1", ["alice", "bob"]) in services.notifier.events
