import copy

import pytest
from google.cloud.firestore_v1 import ArrayUnion


def _matches(doc, field, op, value):
    actual = doc.get(field)
    if op == '==':
        return actual == value
    if op == '!=':
        return actual != value
    if op == 'array_contains':
        return isinstance(actual, list) and value in actual
    if actual is None:
        return False
    if op == '>':
        return actual > value
    if op == '>=':
        return actual >= value
    if op == '<':
        return actual < value
    if op == '<=':
        return actual <= value
    raise ValueError(f"Unsupported operator {op}")


class FakeDB:
    """In-memory stand-in for DatabaseService with the same tuple returns"""

    def __init__(self):
        self.collections = {}
        self._next_id = 0
        self.fail_creates = False

    def _collection(self, name):
        return self.collections.setdefault(name, {})

    def seed(self, collection, document_id, data):
        self._collection(collection)[document_id] = copy.deepcopy(data)
        return document_id

    def raw(self, collection, document_id):
        return self.collections.get(collection, {}).get(document_id)

    async def create_document(self, collection, data, document_id=None, validate=True):
        if self.fail_creates:
            return False, None, "create failed"
        if document_id is None:
            self._next_id += 1
            document_id = f"doc{self._next_id}"
        self._collection(collection)[document_id] = copy.deepcopy(data)
        return True, document_id, None

    async def get_document(self, collection, document_id):
        data = self.raw(collection, document_id)
        if data is None:
            return False, None, f"Document {document_id} not found in {collection}"
        return True, {**copy.deepcopy(data), 'id': document_id}, None

    async def set_document(self, collection, document_id, data, merge=False):
        existing = self._collection(collection).get(document_id, {}) if merge else {}
        self._collection(collection)[document_id] = {**existing, **copy.deepcopy(data)}
        return True, None

    async def update_document(self, collection, document_id, data, validate=False):
        doc = self.raw(collection, document_id)
        if doc is None:
            return False, f"Document {document_id} not found in {collection}"
        for key, value in data.items():
            target = doc
            parts = key.split('.')
            for part in parts[:-1]:
                target = target.setdefault(part, {})
            if isinstance(value, ArrayUnion):
                current = target.get(parts[-1]) or []
                target[parts[-1]] = current + [v for v in value.values if v not in current]
            else:
                target[parts[-1]] = copy.deepcopy(value)
        return True, None

    async def delete_document(self, collection, document_id):
        self._collection(collection).pop(document_id, None)
        return True, None

    async def query_documents(self, collection, filters=None, limit=None, order_by=None, descending=False):
        docs = [
            {**copy.deepcopy(data), 'id': doc_id}
            for doc_id, data in self._collection(collection).items()
            if all(_matches(data, f, op, v) for f, op, v in filters or [])
        ]
        if order_by:
            docs = [d for d in docs if d.get(order_by) is not None]
            docs.sort(key=lambda d: d[order_by], reverse=descending)
        if limit:
            docs = docs[:limit]
        return True, docs, None

    async def get_all_documents(self, collection):
        _, docs, _ = await self.query_documents(collection)
        return docs


class FakeStorage:
    def __init__(self):
        self.uploaded = []
        self.deleted = []

    async def upload_profile_picture(self, uid, file):
        path = f"profilePics/{uid}.jpg"
        self.uploaded.append(path)
        return {'file_path': path, 'download_url': f"https://files.test/{path}"}

    async def upload_note_file(self, uid, course, file):
        path = f"notes/{uid}/{file.filename}"
        self.uploaded.append(path)
        return {'file_path': path, 'download_url': f"https://files.test/{path}"}

    async def delete_file(self, file_path):
        self.deleted.append(file_path)
        return True


class RecordingNotifier:
    def __init__(self):
        self.events = []

    async def new_message(self, chat_id, participants, message):
        self.events.append(('new_message', chat_id, list(participants)))

    async def chat_read(self, chat_id, participants, reader_id):
        self.events.append(('chat_read', chat_id, reader_id))

    async def chat_deleted(self, chat_id, participants):
        self.events.append(('chat_deleted', chat_id, list(participants)))


@pytest.fixture
def fake_db():
    return FakeDB()


@pytest.fixture
def fake_storage():
    return FakeStorage()


@pytest.fixture
def services(fake_db, fake_storage):
    from studymatch.services.user_service import UserService
    from studymatch.services.partner_service import PartnerService
    from studymatch.services.match_service import MatchService
    from studymatch.services.chat_service import ChatService
    from studymatch.services.note_service import NoteService

    users = UserService(db=fake_db, storage=fake_storage)
    partners = PartnerService(db=fake_db, users=users)
    notifier = RecordingNotifier()

    class Services:
        pass

    s = Services()
    s.db = fake_db
    s.storage = fake_storage
    s.users = users
    s.partners = partners
    s.matches = MatchService(db=fake_db, partners=partners)
    s.notifier = notifier
    s.chats = ChatService(db=fake_db, partners=partners, users=users, notifier=notifier)
    s.notes = NoteService(db=fake_db, storage=fake_storage)
    return s
