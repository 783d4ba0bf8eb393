"""
Unit tests for the staff <-> participant message side-channel
"""
import pytest

from virtual_room.models import SenderType, SessionMessage
from virtual_room.services.messaging import get_messages, mark_messages_read, send_message
from virtual_room.services.presence import join_session
from virtual_room.utils.base import ErrorCode, VirtualRoomError


@pytest.fixture
def participant(open_room, now):
    """(participant_id, owning student, other student) in a waiting room"""
    _, assignment, students = open_room()
    participant_id = join_session(str(assignment.id), students[0], now=now)["participant_id"]
    return participant_id, students[0], students[1]


class TestSendMessage:
    """Tests for send_message"""

    def test_staff_message_is_tagged_admin(self, participant, staff):
        participant_id, _, _ = participant

        sent = send_message(participant_id, "  Five minutes left  ", staff)

        assert sent["sender_type"] == SenderType.ADMIN.value
        assert sent["message"] == "Five minutes left"
        assert sent["is_read"] is False
        assert sent["sender_name"] == staff.name

    def test_student_writes_on_own_thread(self, participant):
        participant_id, owner, _ = participant

        sent = send_message(participant_id, "My screen froze", owner)

        assert sent["sender_type"] == SenderType.STUDENT.value

    def test_student_cannot_write_on_another_thread(self, participant):
        participant_id, _, other = participant

        with pytest.raises(VirtualRoomError) as exc:
            send_message(participant_id, "Hi", other)
        assert exc.value.code is ErrorCode.FORBIDDEN

    @pytest.mark.parametrize("text", ["", "   ", "x" * 1001])
    def test_rejects_bad_length(self, participant, staff, text):
        participant_id, _, _ = participant

        with pytest.raises(VirtualRoomError) as exc:
            send_message(participant_id, text, staff)
        assert exc.value.code is ErrorCode.INVALID_INPUT

    def test_accepts_maximum_length(self, participant, staff):
        participant_id, _, _ = participant
        assert len(send_message(participant_id, "x" * 1000, staff)["message"]) == 1000


class TestReadState:
    """Tests for get_messages and mark_messages_read"""

    def test_thread_is_oldest_first(self, participant, staff):
        participant_id, owner, _ = participant
        send_message(participant_id, "first", staff)
        send_message(participant_id, "second", owner)

        thread = get_messages(participant_id, owner)

        assert [m["message"] for m in thread] == ["first", "second"]

    def test_student_marks_only_staff_messages(self, participant, staff):
        participant_id, owner, _ = participant
        send_message(participant_id, "from staff", staff)
        send_message(participant_id, "from student", owner)

        marked = mark_messages_read(participant_id, owner)

        assert marked == 1
        unread = SessionMessage.objects(is_read=False)
        assert [m.sender_type for m in unread] == [SenderType.STUDENT.value]

    def test_staff_marks_selected_messages(self, participant, staff):
        participant_id, owner, _ = participant
        keep = send_message(participant_id, "one", owner)
        target = send_message(participant_id, "two", owner)

        marked = mark_messages_read(participant_id, staff, message_ids=[target["id"], "not-an-id"])

        assert marked == 1
        assert SessionMessage.objects(id=keep["id"]).first().is_read is False
        assert SessionMessage.objects(id=target["id"]).first().read_at is not None
