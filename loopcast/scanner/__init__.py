from .inspector import Validator
from .media_probe import MediaProbe, ensure_tool_available
from .manager import ValidityScanner
