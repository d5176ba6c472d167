"""Key layout for the global config store and the per-tenant data stores."""


class RedisKeys:
    """Key builders. All tenant data keys include the service id."""

    SERVICES_INDEX = "services:all"

    @staticmethod
    def service_config(service_id: str) -> str:
        return f"service_config:{service_id}"

    @staticmethod
    def session_messages(service_id: str, session_id: str) -> str:
        return f"service:{service_id}:session:{session_id}:messages"

    @staticmethod
    def session_metadata(service_id: str, session_id: str) -> str:
        return f"service:{service_id}:session:{session_id}:metadata"

    @staticmethod
    def user_bucket(user_id: str, service_id: str, category: str) -> str:
        return f"user:{user_id}:service:{service_id}:bucket:{category}"

    @staticmethod
    def bucket_lock(user_id: str, service_id: str, category: str) -> str:
        return f"lock:{RedisKeys.user_bucket(user_id, service_id, category)}"
