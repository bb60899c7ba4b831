class RedisKeys:
    """Centralised Redis key pattern definitions"""

    # Session patterns
    ACTIVE_SESSION_SET = "sessions:active"
    SESSION_DATA_HASH = "session:{session_id}"

    @classmethod
    def session_key(cls, session_id: str) -> str:
        """Generate session key for given session ID."""
        return cls.SESSION_DATA_HASH.format(session_id=session_id)
