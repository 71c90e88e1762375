import pytest

pytestmark = pytest.mark.asyncio

PARTNERS = 'partners'
USERS = 'users'


def seed_partnership(db, partnership_id, user_a, user_b, course="CS 3240", **extra):
    data = {
        'userA': user_a, 'userB': user_b, 'course': course,
        'userAName': f"Name {user_a}", 'userBName': f"Name {user_b}",
        'userAComputingId': user_a[:6], 'userBComputingId': user_b[:6],
        'deleteRequestedBy': [], 'blockedBy': [],
    }
    data.update(extra)
    return db.seed(PARTNERS, partnership_id, data)


async def test_create_pair_caches_names_and_is_unique_per_course(services):
    services.db.seed(USERS, "alice", {'name': "Alice Smith", 'computingId': "abc1de"})
    services.db.seed(USERS, "bob", {'name': "Bob Jones", 'computingId': "xyz9wv"})

    first = await services.partners.create_partner_pair("alice", "bob", "CS 3240")
    again = await services.partners.create_partner_pair("bob", "alice", "CS 3240")
    other_course = await services.partners.create_partner_pair("alice", "bob", "MATH 3350")

    assert first and other_course and again is None
    stored = services.db.raw(PARTNERS, first)
    assert stored['userAName'] == "Alice Smith"
    assert stored['userBComputingId'] == "xyz9wv"
    assert stored['blockedBy'] == [] and stored['deleteRequestedBy'] == []


async def test_can_send_match_request_respects_cap(services):
    seed_partnership(services.db, "p1", "alice", "bob")
    assert await services.partners.can_send_match_request("alice", "CS 3240") is True

    seed_partnership(services.db, "p2", "carol", "alice")
    assert await services.partners.can_send_match_request("alice", "CS 3240") is False


async def test_accepted_partners_seen_from_either_side(services):
    seed_partnership(services.db, "p1", "alice", "bob", course="MATH 3350")
    seed_partnership(services.db, "p2", "carol", "alice")
    seed_partnership(services.db, "p3", "bob", "carol")

    partners = await services.partners.get_accepted_partners("alice")

    assert [(p['course'], p['partnerId'], p['partnerName']) for p in partners] == [
        ("CS 3240", "carol", "Name carol"),
        ("MATH 3350", "bob", "Name bob"),
    ]


async def test_placeholder_name_is_refreshed_and_written_back(services):
    services.db.seed(USERS, "bob", {'name': "Bob Jones", 'computingId': "bj4ab"})
    seed_partnership(services.db, "p1", "alice", "bob", userBName="Unknown User")

    partners = await services.partners.get_partners_for_course_with_names("alice", "CS 3240")

    assert partners[0]['partnerName'] == "Bob Jones"
    assert services.db.raw(PARTNERS, "p1")['userBName'] == "Bob Jones"


async def test_delete_needs_both_members(services):
    seed_partnership(services.db, "p1", "alice", "bob")

    assert await services.partners.request_delete_partner("p1", "alice") == "requested"
    assert await services.partners.request_delete_partner("p1", "alice") == "unchanged"
    assert services.db.raw(PARTNERS, "p1") is not None

    assert await services.partners.request_delete_partner("p1", "bob") == "deleted"
    assert services.db.raw(PARTNERS, "p1") is None


async def test_delete_request_errors(services):
    seed_partnership(services.db, "p1", "alice", "bob")

    with pytest.raises(ValueError, match="not found"):
        await services.partners.request_delete_partner("missing", "alice")
    with pytest.raises(PermissionError):
        await services.partners.request_delete_partner("p1", "mallory")


async def test_block_and_unblock(services):
    seed_partnership(services.db, "p1", "alice", "bob")

    await services.partners.block_partner("p1", "alice")
    await services.partners.block_partner("p1", "alice")

    assert services.db.raw(PARTNERS, "p1")['blockedBy'] == ["alice"]
    assert await services.partners.is_partner_blocked("p1", "alice") is True
    assert await services.partners.is_partner_blocked("p1", "bob") is False
    assert await services.partners.get_blocked_user_ids("alice") == {"bob"}
    assert await services.partners.get_blocked_user_ids("bob") == set()

    blocked = await services.partners.get_blocked_partners("alice")
    assert [p['partnerId'] for p in blocked] == ["bob"]

    await services.partners.unblock_partner("p1", "alice")
    assert services.db.raw(PARTNERS, "p1")['blockedBy'] == []


async def test_block_requires_membership(services):
    seed_partnership(services.db, "p1", "alice", "bob")

    with pytest.raises(PermissionError):
        await services.partners.block_partner("p1", "mallory")


async def test_report_appends_reason(services):
    seed_partnership(services.db, "p1", "alice", "bob")

    await services.partners.report_partner("p1", "alice", "  No-show  ")

    reports = services.db.raw(PARTNERS, "p1")['reports']
    assert len(reports) == 1
    assert reports[0]['reporterId'] == "alice"
    assert reports[0]['reason'] == "No-show"


async def test_report_requires_reason(services):
    seed_partnership(services.db, "p1", "alice", "bob")

    with pytest.raises(ValueError, match="reason for reporting"):
        await services.partners.report_partner("p1", "alice", "   ")


async def test_refresh_all_partnership_names(services):
    services.db.seed(USERS, "alice", {'name': "Alice Smith", 'computingId': "abc1de"})
    services.db.seed(USERS, "bob", {'name': "Bob Jones", 'computingId': "xyz9wv"})
    seed_partnership(services.db, "p1", "alice", "bob", userAName="Unknown User", userBName="Study Partner")
    seed_partnership(services.db, "p2", "bob", "carol")

    result = await services.partners.refresh_all_partnership_names("alice")

    assert result['success'] is True
    assert result['message'] == "Refreshed 1 partnerships"
    assert result['refreshedPartnerships'] == [{
        'partnershipId': "p1", 'course': "CS 3240", 'userAName': "Alice Smith", 'userBName': "Bob Jones",
    }]
    stored = services.db.raw(PARTNERS, "p1")
    assert stored['userBComputingId'] == "xyz9wv"
    assert stored['blockedBy'] == [] and stored['course'] == "CS 3240"
    assert services.db.raw(PARTNERS, "p2")['userAName'] == "Name bob"
    assert services.db.raw(USERS, "bob")['name'] == "Bob Jones"
