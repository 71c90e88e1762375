# Collection Names
COLLECTIONS = {
    'users': 'users',
    'match_requests': 'matchRequests',
    'partners': 'partners',
    'chats': 'chats',
    'messages': 'messages',  # subcollection of chats/{chat_id}
    'notes': 'notes',
}

# Collection Structure Documentation
COLLECTION_SCHEMAS = {
    'users': {
        'fields': ['name', 'email', 'computingId', 'bio', 'courses', 'studyTimes', 'meetingPreference', 'selectedAvatar', 'photoURL', 'createdAt', 'lastUpdated', 'isPlaceholder'],
        'required': ['name', 'email', 'computingId'],
        'indexes': ['computingId']
    },
    'match_requests': {
        'fields': ['senderId', 'receiverId', 'course', 'studyTime', 'meetingPreference', 'bio', 'status', 'createdAt', 'updatedAt'],
        'required': ['senderId', 'course', 'status'],
        'indexes': ['senderId', 'receiverId', 'course', 'status']
    },
    'partners': {
        'fields': ['userA', 'userB', 'course', 'deleteRequestedBy', 'blockedBy', 'reports', 'userAName', 'userBName', 'userAComputingId', 'userBComputingId', 'createdAt', 'lastNameUpdate'],
        'required': ['userA', 'userB', 'course'],
        'indexes': ['course']
    },
    'chats': {
        'fields': ['participants', 'sharedCourses', 'lastReadBy', 'createdAt'],
        'required': ['participants'],
        'indexes': ['participants']
    },
    'messages': {
        'fields': ['senderId', 'text', 'sentAt'],
        'required': ['senderId', 'text'],
        'indexes': ['sentAt']
    },
    'notes': {
        'fields': ['authorId', 'authorName', 'title', 'course', 'mediaURL', 'storagePath', 'rating', 'ratings', 'createdAt'],
        'required': ['authorId', 'title', 'course', 'mediaURL'],
        'indexes': ['course', 'authorId']
    },
}

# Sender id used for messages generated by the service itself
SYSTEM_SENDER_ID = 'system'


def messages_path(chat_id: str) -> str:
    """Path of the messages subcollection for a chat."""
    return f"{COLLECTIONS['chats']}/{chat_id}/{COLLECTIONS['messages']}"
