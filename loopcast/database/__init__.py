from .json_store import ValidityCache
